"""
Locale redirects.

Un-prefixed entry paths must send the visitor to a locale-prefixed page,
either by HTTP redirect or by a client-side redirect in the served HTML.
"""

import logging
import re
import time
from typing import Optional, Sequence
from urllib.parse import urlparse

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import CategorySummary, ResultStatus, ValidationResult
from deploy_validator.services.retry import fetch_with_retry
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
    resolve_link,
)

logger = logging.getLogger(__name__)

ENTRY_PATHS = ("/", "/search", "/blog")

META_REFRESH_RE = re.compile(
    r"<meta\s+[^>]*http-equiv=[\"']refresh[\"'][^>]*content=[\"'][^\"']*url=([^\"';]+)",
    re.IGNORECASE,
)
JS_LOCATION_RE = re.compile(
    r"(?:window\.)?location(?:\.href)?\s*=\s*[\"']([^\"']+)[\"']|location\.replace\(\s*[\"']([^\"']+)[\"']",
)


def locale_prefix(path: str, locales: Sequence[str]) -> Optional[str]:
    """Locale the path is prefixed with, if any."""
    first = path.lstrip("/").split("/", 1)[0].lower()
    for locale in locales:
        if first == locale.lower():
            return locale
    return None


def client_redirect_target(html: str) -> Optional[str]:
    match = META_REFRESH_RE.search(html)
    if match:
        return match.group(1).strip()
    match = JS_LOCATION_RE.search(html)
    if match:
        return match.group(1) or match.group(2)
    return None


class LocaleRedirectValidator(CategoryValidator):
    category = "locale_redirects"
    display_name = "Locale Redirects"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="Locale Redirects")
    remediation = "Check the redirect rules that map bare paths to a locale prefix"

    async def check_path(self, path: str, ctx: ValidationContext) -> ValidationResult:
        start = time.perf_counter()
        try:
            response = await fetch_with_retry(
                ctx.client, ctx.full_url(path), ctx.timeout_ms,
                retry_options=ctx.retry_options, sleep=ctx.sleep,
            )
        except Exception as e:
            return error_result(ValidationResult, path, e, start)

        response_time = elapsed_ms(start)
        final_url = str(response.url)

        def result(error: Optional[str]) -> ValidationResult:
            return ValidationResult(
                url=path,
                status=ResultStatus.FAIL if error else ResultStatus.PASS,
                status_code=response.status_code,
                error=error,
                response_time=response_time,
            )

        if not response.is_success:
            return result(f"HTTP {response.status_code} at {final_url}")

        if locale_prefix(urlparse(final_url).path, ctx.locales):
            return result(None)

        target = client_redirect_target(response.text)
        resolved = resolve_link(final_url, target) if target else None
        if resolved and locale_prefix(resolved.path, ctx.locales):
            return result(None)

        return result(f"Not redirected to a locale (landed on {urlparse(final_url).path or '/'})")

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        logger.info(f"Validating locale redirects for {len(ENTRY_PATHS)} entry paths")
        results = []
        for path in ENTRY_PATHS:
            result = await self.check_path(path, ctx)
            if not result.passed:
                logger.warning(f"  ! {path}: {result.describe_failure()}")
            results.append(result)
        return self.summarize(results)
