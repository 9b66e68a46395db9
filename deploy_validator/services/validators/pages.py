"""Page reachability: every sampled page answers 2xx in time."""

import logging
import time

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import (
    CategorySummary,
    ResultStatus,
    UrlSample,
    ValidationResult,
)
from deploy_validator.services.batching import process_batch
from deploy_validator.services.retry import timed_request
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
)

logger = logging.getLogger(__name__)


class PageValidator(CategoryValidator):
    category = "pages"
    display_name = "Page Requests"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="Page Requests")
    remediation = "Check that all sampled routes were generated by the build and deployed"

    async def check_page(self, sample: UrlSample, ctx: ValidationContext) -> ValidationResult:
        # Single attempt: reachability is measured as a user would see it
        start = time.perf_counter()
        try:
            response = await timed_request(ctx.client, "GET", ctx.full_url(sample.url), ctx.timeout_ms)
        except Exception as e:
            return error_result(ValidationResult, sample.url, e, start)

        response_time = elapsed_ms(start)

        if not response.is_success:
            return ValidationResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"HTTP {response.status_code} {response.reason_phrase}".strip(),
                response_time=response_time,
            )

        limit = ctx.settings.PAGE_MAX_RESPONSE_MS
        if response_time > limit:
            return ValidationResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"Response too slow: {response_time}ms (max {limit}ms)",
                response_time=response_time,
            )

        return ValidationResult(
            url=sample.url,
            status=ResultStatus.PASS,
            status_code=response.status_code,
            response_time=response_time,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        pages = ctx.samples.pages
        logger.info(
            f"Validating {len(pages)} pages against {ctx.base_url} "
            f"(timeout {ctx.timeout_ms}ms, concurrency {ctx.concurrency})"
        )
        results = await process_batch(pages, ctx.concurrency, lambda s: self.check_page(s, ctx))
        return self.summarize(results)
