"""
Internal link integrity.

Anchors on sampled pages that point back into the site must resolve.
Targets already in the page sample are taken as resolved; every other
unique target is probed once.
"""

import logging
import re
import time
from typing import Dict, List, Tuple
from urllib.parse import urlparse

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import CategorySummary, LinkCheckResult, ResultStatus
from deploy_validator.services.batching import process_batch
from deploy_validator.services.retry import fetch_with_retry
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
    fetch_html,
    normalize_path,
    one_per_category_locale,
    resolve_link,
)

logger = logging.getLogger(__name__)

ANCHOR_HREF_RE = re.compile(r"<a\b[^>]*\bhref=[\"']([^\"']*)[\"']", re.IGNORECASE)
SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")


def extract_internal_links(html: str, page_url: str, limit: int) -> List[str]:
    """Unique same-origin link paths on a page, in document order."""
    origin = urlparse(page_url).netloc
    paths: List[str] = []
    for href in ANCHOR_HREF_RE.findall(html):
        href = href.strip()
        if not href or href.startswith("#") or href.lower().startswith(SKIPPED_SCHEMES):
            continue
        target = resolve_link(page_url, href)
        if target is None or target.netloc != origin:
            continue
        path = normalize_path(target.path)
        if path not in paths:
            paths.append(path)
        if len(paths) >= limit:
            break
    return paths


class LinkValidator(CategoryValidator):
    category = "link_checks"
    display_name = "Internal Links"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="Internal Links")
    remediation = "Fix or remove internal links whose target routes are not generated"

    async def probe(self, path: str, source: str, ctx: ValidationContext) -> LinkCheckResult:
        start = time.perf_counter()
        url = ctx.full_url(path)
        try:
            response = await fetch_with_retry(
                ctx.client, url, ctx.timeout_ms, method="HEAD",
                retry_options=ctx.retry_options, sleep=ctx.sleep,
            )
            if response.status_code == 405:
                response = await fetch_with_retry(
                    ctx.client, url, ctx.timeout_ms,
                    retry_options=ctx.retry_options, sleep=ctx.sleep,
                )
        except Exception as e:
            return error_result(LinkCheckResult, path, e, start, source=source)

        ok = response.is_success
        return LinkCheckResult(
            url=path,
            source=source,
            status=ResultStatus.PASS if ok else ResultStatus.FAIL,
            status_code=response.status_code,
            error=None if ok else f"HTTP {response.status_code} (linked from {source})",
            response_time=elapsed_ms(start),
        )

    async def collect_targets(self, ctx: ValidationContext) -> Tuple[Dict[str, str], List[LinkCheckResult]]:
        """Map each unique target path to the first page linking to it."""
        targets: Dict[str, str] = {}
        page_errors: List[LinkCheckResult] = []

        pages = one_per_category_locale(ctx.samples.pages)

        async def scan(sample):
            try:
                response, html, _ = await fetch_html(ctx, sample.url)
            except Exception as e:
                return sample.url, None, e
            return sample.url, response, html

        for url, response, body in await process_batch(pages, ctx.concurrency, scan):
            if response is None:
                page_errors.append(error_result(LinkCheckResult, url, body, source=url))
                continue
            if not response.is_success:
                logger.debug(f"Skipping links on {url}: HTTP {response.status_code}")
                continue
            for path in extract_internal_links(body, str(response.url), ctx.settings.MAX_LINKS_PER_PAGE):
                targets.setdefault(path, url)

        return targets, page_errors

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        targets, results = await self.collect_targets(ctx)

        to_probe = []
        for path, source in targets.items():
            if path in ctx.known_paths:
                results.append(LinkCheckResult(
                    url=path,
                    source=source,
                    status=ResultStatus.PASS,
                    resolved_from_sample=True,
                ))
            else:
                to_probe.append((path, source))

        logger.info(
            f"Checking {len(targets)} internal links "
            f"({len(targets) - len(to_probe)} already sampled, {len(to_probe)} probed)"
        )
        results.extend(await process_batch(
            to_probe, ctx.concurrency, lambda item: self.probe(item[0], item[1], ctx)
        ))

        for result in results:
            if not result.passed:
                logger.warning(f"  ! {result.url}: {result.describe_failure()}")

        return self.summarize(results)
