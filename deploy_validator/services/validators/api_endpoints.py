"""JSON data endpoints: reachable, typed as JSON, and shaped as expected."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import ApiResult, CategorySummary, ResultStatus
from deploy_validator.services.retry import fetch_with_retry
from deploy_validator.services.validators.base import (
    CategoryValidator,
    ValidationContext,
    elapsed_ms,
    error_result,
)
from deploy_validator.utils.config import Settings

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPES = ("application/json", "text/json")
CARD_FIELDS = ("id", "name", "playable", "stats")


@dataclass(frozen=True)
class Endpoint:
    path: str
    description: str
    expected_fields: Tuple[str, ...] = ()
    check: Optional[Callable[[Any, Settings], List[str]]] = field(default=None, compare=False)


def check_card_index(data: Any, settings: Settings) -> List[str]:
    """Card index shape: version, card count range, spot-checked card fields."""
    errors = []

    if not isinstance(data.get("version"), str):
        errors.append("version is not a string")

    total = data.get("total_cards")
    if not isinstance(total, int) or isinstance(total, bool):
        errors.append("total_cards is not a number")
    elif not settings.API_MIN_CARDS <= total <= settings.API_MAX_CARDS:
        errors.append(
            f"Unexpected card count: {total} "
            f"(expected {settings.API_MIN_CARDS}-{settings.API_MAX_CARDS})"
        )

    cards = data.get("cards")
    if not isinstance(cards, dict):
        errors.append("cards is not an object")
        return errors

    if len(cards) < settings.API_MIN_CARDS:
        errors.append(f"Only {len(cards)} cards in index (expected {settings.API_MIN_CARDS}+)")

    if cards:
        first = next(iter(cards.values()))
        if not isinstance(first, dict):
            errors.append("Card entry is not an object")
        else:
            for name in CARD_FIELDS:
                if name not in first:
                    errors.append(f"Card missing required field: {name}")
                    break

    return errors


DATA_ENDPOINTS = (
    Endpoint(
        path="/data/cards_index.json",
        description="Card index for table",
        expected_fields=("version", "total_cards", "cards"),
        check=check_card_index,
    ),
    Endpoint(
        path="/data/ja/cards_index.json",
        description="Localized card index (ja)",
    ),
)


class ApiEndpointValidator(CategoryValidator):
    category = "api_endpoints"
    display_name = "API Endpoints"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="API Endpoints")
    remediation = "Regenerate the static data files and confirm they are served as application/json"

    endpoints = DATA_ENDPOINTS

    async def check_endpoint(self, endpoint: Endpoint, ctx: ValidationContext) -> ApiResult:
        start = time.perf_counter()
        try:
            response = await fetch_with_retry(
                ctx.client,
                ctx.full_url(endpoint.path),
                ctx.timeout_ms,
                retry_options=ctx.retry_options,
                sleep=ctx.sleep,
            )
        except Exception as e:
            return error_result(ApiResult, endpoint.path, e, start, description=endpoint.description)

        response_time = elapsed_ms(start)

        def failed(error: str, validation_errors: Optional[List[str]] = None) -> ApiResult:
            return ApiResult(
                url=endpoint.path,
                description=endpoint.description,
                status=ResultStatus.FAIL,
                status_code=response.status_code,
                error=error,
                response_time=response_time,
                validation_errors=validation_errors or [],
            )

        if not response.is_success:
            return failed(f"HTTP {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if not any(t in content_type for t in JSON_CONTENT_TYPES):
            return failed(f"Not JSON: {content_type or 'no content-type'}")

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return failed("Invalid JSON")

        if not isinstance(data, dict):
            return failed("Top-level JSON value is not an object")

        errors = [f"Missing field: {name}" for name in endpoint.expected_fields if name not in data]
        if endpoint.check:
            errors.extend(endpoint.check(data, ctx.settings))

        if errors:
            return failed("; ".join(errors), errors)

        return ApiResult(
            url=endpoint.path,
            description=endpoint.description,
            status=ResultStatus.PASS,
            status_code=response.status_code,
            response_time=response_time,
        )

    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        logger.info(f"Validating {len(self.endpoints)} API endpoints")
        results = []
        for endpoint in self.endpoints:
            result = await self.check_endpoint(endpoint, ctx)
            if not result.passed:
                logger.warning(f"  ! {endpoint.path}: {result.describe_failure()}")
            results.append(result)
        return self.summarize(results)
