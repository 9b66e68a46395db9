"""
Response time and payload size checks.

Requests are made one at a time and never retried so the timings reflect
a single uncontended fetch.
"""

import logging
import time
from typing import Dict, List, Sequence

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import (
    CategorySummary,
    PerformanceResult,
    ResultStatus,
    SampleCategory,
    UrlSample,
)
from deploy_validator.services.retry import timed_request
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
)

logger = logging.getLogger(__name__)


def select_samples(pages: Sequence[UrlSample], extra_card_pages: int) -> List[UrlSample]:
    """One page per sample category, plus the first few card pages."""
    selected = []
    seen_categories = set()
    for sample in pages:
        if sample.category not in seen_categories:
            seen_categories.add(sample.category)
            selected.append(sample)

    urls = {s.url for s in selected}
    cards = [s for s in pages if s.category == SampleCategory.CARD][:extra_card_pages]
    for sample in cards:
        if sample.url not in urls:
            urls.add(sample.url)
            selected.append(sample)

    return selected


def calculate_stats(times: Sequence[int]) -> Dict[str, int]:
    """min/max/avg and nearest-rank p50/p95/p99 of response times."""
    if not times:
        return {"min": 0, "max": 0, "avg": 0, "p50": 0, "p95": 0, "p99": 0}

    ordered = sorted(times)
    n = len(ordered)
    return {
        "min": ordered[0],
        "max": ordered[-1],
        "avg": round(sum(ordered) / n),
        "p50": ordered[int(n * 0.5)],
        "p95": ordered[int(n * 0.95)],
        "p99": ordered[int(n * 0.99)],
    }


class PerformanceValidator(CategoryValidator):
    category = "performance"
    display_name = "Performance"
    default_threshold = ThresholdConfig(min_pass_rate=0.9, is_hard_failure=False, display_name="Performance")
    remediation = "Profile slow routes and reduce page weight or CDN cache misses"

    async def measure(self, sample: UrlSample, ctx: ValidationContext) -> PerformanceResult:
        settings = ctx.settings
        start = time.perf_counter()
        try:
            response = await timed_request(ctx.client, "GET", ctx.full_url(sample.url), ctx.timeout_ms)
        except Exception as e:
            return error_result(PerformanceResult, sample.url, e, start)

        response_time = elapsed_ms(start)

        if not response.is_success:
            return PerformanceResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
                response_time=response_time,
            )

        content_length = response.headers.get("content-length")
        if content_length and content_length.isdigit():
            payload_size = int(content_length)
        else:
            payload_size = len(response.content)

        if payload_size > settings.PERF_MAX_PAYLOAD_BYTES:
            return PerformanceResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"Payload too large: {payload_size / 1024 / 1024:.2f}MB",
                response_time=response_time,
                payload_size=payload_size,
            )

        if response_time > settings.PERF_MAX_RESPONSE_MS:
            return PerformanceResult(
                url=sample.url,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=f"Response too slow: {response_time}ms",
                response_time=response_time,
                payload_size=payload_size,
            )

        return PerformanceResult(
            url=sample.url,
            status=ResultStatus.PASS,
            status_code=response.status_code,
            response_time=response_time,
            payload_size=payload_size,
            is_slow_but_passed=response_time > settings.PERF_WARN_RESPONSE_MS,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        settings = ctx.settings
        samples = select_samples(ctx.samples.pages, settings.PERF_EXTRA_CARD_PAGES)
        logger.info(
            f"Running performance checks on {len(samples)} pages "
            f"(warn={settings.PERF_WARN_RESPONSE_MS}ms, fail={settings.PERF_MAX_RESPONSE_MS}ms)"
        )

        results = []
        for sample in samples:
            result = await self.measure(sample, ctx)
            if not result.passed or result.is_slow_but_passed:
                logger.warning(f"  {'~' if result.passed else '!'} {sample.url} - {result.response_time}ms")
            results.append(result)

        stats = calculate_stats([r.response_time for r in results if r.response_time is not None])
        warned = sum(1 for r in results if r.is_slow_but_passed)
        logger.info(f"Response times: avg={stats['avg']}ms p95={stats['p95']}ms max={stats['max']}ms")

        return self.summarize(results, warned=warned, details={"stats": stats})
