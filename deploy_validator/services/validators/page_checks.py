"""
Shared flow for validators that run text checks against page markup.

One page per (sample category, locale) is fetched with retry; the subclass
turns its HTML into SubChecks and the page passes only if all of them do.
"""

import logging
import time
from abc import abstractmethod
from typing import List

from deploy_validator.models.validation import (
    CategorySummary,
    CheckedPageResult,
    ResultStatus,
    SubCheck,
    UrlSample,
)
from deploy_validator.services.batching import process_batch
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    error_result,
    fetch_html,
    one_per_category_locale,
)

logger = logging.getLogger(__name__)


class PageCheckValidator(CategoryValidator):

    @abstractmethod
    def run_checks(self, html: str, sample: UrlSample, ctx: ValidationContext) -> List[SubCheck]:
        """Evaluate the page markup."""

    async def check_page(self, sample: UrlSample, ctx: ValidationContext) -> CheckedPageResult:
        start = time.perf_counter()
        try:
            response, html, response_time = await fetch_html(ctx, sample.url)
        except Exception as e:
            return error_result(CheckedPageResult, sample.url, e, start)

        if not response.is_success:
            return CheckedPageResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
                response_time=response_time,
            )

        try:
            checks = self.run_checks(html, sample, ctx)
        except Exception as e:
            logger.exception(f"{self.display_name} checks raised on {sample.url}")
            return error_result(CheckedPageResult, sample.url, e, start, status_code=response.status_code)

        passed = all(check.passed for check in checks)
        return CheckedPageResult(
            url=sample.url,
            status=ResultStatus.PASS if passed else ResultStatus.FAIL,
            status_code=response.status_code,
            response_time=response_time,
            checks=checks,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        pages = one_per_category_locale(ctx.samples.pages)
        logger.info(f"Running {self.display_name} checks on {len(pages)} pages")

        results = await process_batch(pages, ctx.concurrency, lambda s: self.check_page(s, ctx))

        for result in results:
            if not result.passed:
                logger.warning(f"  ! {result.url}: {result.describe_failure()}")

        return self.summarize(results)
