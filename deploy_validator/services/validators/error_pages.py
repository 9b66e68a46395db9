"""
Not-found handling.

A deliberately invalid card path must produce a real not-found page.
Both a server-side 404 and a client-rendered not-found page served
with 200 are accepted; a near-empty body is not.
"""

import logging
import re
import time

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import CategorySummary, ErrorPageResult, ResultStatus
from deploy_validator.services.retry import timed_request
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
)

logger = logging.getLogger(__name__)

MISSING_CARD_PATH = "/{locale}/cards/nonexistent-card-12345"
MIN_CONTENT_LENGTH = 500

NOT_FOUND_HEADING_RE = re.compile(r"<title[^>]*>.*404.*</title>|<h1[^>]*>.*404.*</h1>", re.IGNORECASE)
NOT_FOUND_TEXT_RE = re.compile(r"not found|doesn't exist|does not exist", re.IGNORECASE)


def error_page_paths(locales):
    return [MISSING_CARD_PATH.format(locale=locale) for locale in locales]


def has_not_found_content(html: str) -> bool:
    return bool(NOT_FOUND_HEADING_RE.search(html) or NOT_FOUND_TEXT_RE.search(html))


def has_back_link(html: str, locales) -> bool:
    alternatives = "|".join(re.escape(locale) for locale in locales)
    return bool(re.search(rf"href=[\"'][^\"']*/({alternatives})/?[\"']", html, re.IGNORECASE))


class ErrorPageValidator(CategoryValidator):
    category = "error_pages"
    display_name = "Error Pages"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="Error Pages")
    remediation = "Make sure the 404 page is built and served for unknown card routes"

    async def check_path(self, path: str, ctx: ValidationContext) -> ErrorPageResult:
        start = time.perf_counter()
        try:
            # No retry: a not-found answer is the expected outcome
            response = await timed_request(ctx.client, "GET", ctx.full_url(path), ctx.timeout_ms)
        except Exception as e:
            return error_result(ErrorPageResult, path, e, start)

        response_time = elapsed_ms(start)
        html = response.text
        not_found = has_not_found_content(html)
        has_content = len(html) > MIN_CONTENT_LENGTH

        if response.status_code == 404:
            detection = "server"
        elif response.status_code == 200 and not_found:
            detection = "client"
        else:
            detection = "none"

        valid = detection != "none" and has_content
        if valid:
            error = None
        elif detection == "none":
            error = f"No 404 handling (status={response.status_code}, no 404 content)"
        else:
            error = f"Missing proper 404 content ({len(html)} chars)"

        return ErrorPageResult(
            url=path,
            status=ResultStatus.PASS if valid else ResultStatus.FAIL,
            status_code=response.status_code,
            error=error,
            response_time=response_time,
            has_proper_content=not_found and has_content,
            has_back_link=has_back_link(html, ctx.locales),
            detection=detection,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        paths = error_page_paths(ctx.locales)
        logger.info(f"Validating {len(paths)} error pages")

        results = []
        for path in paths:
            result = await self.check_path(path, ctx)
            if result.passed:
                logger.debug(f"  . {path} ({result.detection}-side 404)")
            else:
                logger.warning(f"  ! {path}: {result.describe_failure()}")
            results.append(result)

        return self.summarize(results)
