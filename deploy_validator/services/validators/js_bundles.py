"""JavaScript bundles referenced by the entry page are served intact."""

import logging
import re
import time
from typing import List
from urllib.parse import urlparse

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import BundleResult, CategorySummary, ResultStatus
from deploy_validator.services.batching import process_batch
from deploy_validator.services.retry import fetch_with_retry
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
    fetch_html,
    resolve_link,
)

logger = logging.getLogger(__name__)

SCRIPT_SRC_RE = re.compile(r"<script\b[^>]*\bsrc=[\"']([^\"']+)[\"']", re.IGNORECASE)
MODULEPRELOAD_RE = re.compile(
    r"<link\b(?=[^>]*\brel=[\"']modulepreload[\"'])[^>]*\bhref=[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)
JS_CONTENT_TYPES = ("javascript", "ecmascript")


def entry_pages(locales: List[str]) -> List[str]:
    return [f"/{locales[0]}/"]


def find_bundles(html: str, page_url: str) -> List[str]:
    """Same-origin script URLs referenced by a page, in document order."""
    origin = urlparse(page_url).netloc
    bundles = []
    for match in SCRIPT_SRC_RE.findall(html) + MODULEPRELOAD_RE.findall(html):
        target = resolve_link(page_url, match)
        if target is None or target.netloc != origin:
            continue
        url = target.geturl()
        if url not in bundles:
            bundles.append(url)
    return bundles


class JsBundleValidator(CategoryValidator):
    category = "js_bundles"
    display_name = "JS Bundles"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="JS Bundles")
    remediation = "Check that hashed build assets were uploaded with the HTML that references them"

    async def check_bundle(self, url: str, ctx: ValidationContext) -> BundleResult:
        start = time.perf_counter()
        try:
            response = await fetch_with_retry(
                ctx.client, url, ctx.timeout_ms, retry_options=ctx.retry_options, sleep=ctx.sleep
            )
        except Exception as e:
            return error_result(BundleResult, url, e, start)

        content_type = response.headers.get("content-type", "")
        size = len(response.content)
        error = None
        if not response.is_success:
            error = f"HTTP {response.status_code}"
        elif not any(t in content_type for t in JS_CONTENT_TYPES):
            error = f"Unexpected content-type: {content_type or 'none'}"
        elif size == 0:
            error = "Empty bundle"

        return BundleResult(
            url=url,
            status=ResultStatus.FAIL if error else ResultStatus.PASS,
            status_code=response.status_code,
            error=error,
            response_time=elapsed_ms(start),
            content_type=content_type or None,
            size=size,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        results = []
        bundles: List[str] = []

        for page in entry_pages(ctx.locales):
            try:
                response, html, _ = await fetch_html(ctx, page)
            except Exception as e:
                results.append(error_result(BundleResult, page, e))
                continue
            if not response.is_success:
                results.append(BundleResult(
                    url=page,
                    status=ResultStatus.FAIL,
                    status_code=response.status_code,
                    error=f"Entry page returned HTTP {response.status_code}",
                ))
                continue
            found = find_bundles(html, str(response.url))
            if not found:
                results.append(BundleResult(
                    url=page,
                    status=ResultStatus.FAIL,
                    status_code=response.status_code,
                    error="No JavaScript bundles referenced",
                ))
            bundles.extend(url for url in found if url not in bundles)

        logger.info(f"Validating {len(bundles)} JS bundles")
        results.extend(await process_batch(bundles, ctx.concurrency, lambda url: self.check_bundle(url, ctx)))
        return self.summarize(results)
