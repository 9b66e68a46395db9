"""CDN image availability via HEAD requests."""

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


class ImageValidator(CategoryValidator):
    category = "images"
    display_name = "Cloudinary Images"
    default_threshold = ThresholdConfig(
        min_pass_rate=0.98,
        max_failures=3,
        is_hard_failure=False,
        display_name="Cloudinary Images",
    )
    remediation = "Verify the image CDN account and that card image uploads completed"

    async def check_image(self, sample: UrlSample, ctx: ValidationContext) -> ValidationResult:
        start = time.perf_counter()
        try:
            response = await timed_request(ctx.client, "HEAD", sample.url, ctx.timeout_ms)
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

        content_type = response.headers.get("content-type", "")
        if not content_type.startswith("image/"):
            return ValidationResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"Unexpected content-type: {content_type or 'none'}",
                response_time=response_time,
            )

        return ValidationResult(
            url=sample.url,
            status=ResultStatus.PASS,
            status_code=response.status_code,
            response_time=response_time,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        images = ctx.samples.images
        logger.info(f"Validating {len(images)} images (concurrency {ctx.concurrency})")
        results = await process_batch(images, ctx.concurrency, lambda s: self.check_image(s, ctx))
        return self.summarize(results)
