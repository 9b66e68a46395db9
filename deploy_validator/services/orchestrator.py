"""
Validation orchestrator.

Runs one validation pass: sample the site, run every registered category
in order, evaluate thresholds, and return the run summary.
"""

import asyncio
import logging
import random
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import CategorySummary, ValidationSummary
from deploy_validator.services.thresholds import evaluate_threshold, summarize_thresholds
from deploy_validator.services.url_sampler import SamplerOptions, generate_url_samples
from deploy_validator.services.validators import CategoryValidator, ValidationContext, default_registry
from deploy_validator.utils.config import Settings

logger = logging.getLogger(__name__)


def build_client(settings: Settings) -> httpx.AsyncClient:
    """Shared HTTP client for one run."""
    return httpx.AsyncClient(
        headers={"User-Agent": settings.USER_AGENT},
        timeout=settings.VALIDATION_TIMEOUT / 1000,
        follow_redirects=True,
    )


async def run_validation(
    settings: Settings,
    thresholds: Mapping[str, ThresholdConfig],
    registry: Optional[List[CategoryValidator]] = None,
    client: Optional[httpx.AsyncClient] = None,
    rng: Optional[random.Random] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> ValidationSummary:
    """
    Validate a deployment end to end.

    Categories run sequentially in registry order; each validator is
    concurrent internally. Validator exceptions are not caught here.

    Args:
        settings: Effective configuration
        thresholds: Per-category thresholds (defaults plus overrides)
        registry: Validators to run (defaults to the full registry)
        client: HTTP client; one is created and closed when not given
        rng: Random source for sampling
        sleep: Backoff sleep used by retried requests

    Returns:
        Frozen ValidationSummary
    """
    started_at = datetime.now(timezone.utc)
    start = time.perf_counter()
    registry = registry if registry is not None else default_registry()

    logger.info(f"Deployment validation: commit={settings.short_sha} target={settings.base_url}")
    logger.info(
        f"Config: timeout={settings.VALIDATION_TIMEOUT}ms concurrency={settings.VALIDATION_CONCURRENCY} "
        f"sampling={settings.CARDS_PER_LOCALE} cards/locale, {settings.IMAGE_COUNT} images"
    )

    samples = generate_url_samples(SamplerOptions(
        inventory_path=settings.INVENTORY_PATH,
        locales=settings.LOCALES,
        cards_per_locale=settings.CARDS_PER_LOCALE,
        image_count=settings.IMAGE_COUNT,
        rng=rng,
    ))

    owns_client = client is None
    if owns_client:
        client = build_client(settings)

    categories: Dict[str, CategorySummary] = {}
    try:
        ctx = ValidationContext.from_settings(settings, client, samples, sleep=sleep)
        for validator in registry:
            if validator.category in settings.SKIP_CATEGORIES:
                logger.info(f"Skipping {validator.display_name} ({validator.category})")
                continue
            logger.info(f"Validating {validator.display_name}...")
            categories[validator.category] = await validator.validate(ctx)
    finally:
        if owns_client:
            await client.aclose()

    threshold_results = [
        evaluate_threshold(category, summary.passed, summary.total, thresholds)
        for category, summary in categories.items()
    ]
    verdict = summarize_thresholds(threshold_results)

    return ValidationSummary(
        target=settings.base_url,
        commit=settings.short_sha,
        started_at=started_at,
        categories=categories,
        threshold_results=threshold_results,
        success=verdict.overall_passed,
        hard_failures=len(verdict.hard_failures),
        soft_failures=len(verdict.soft_failures),
        duration_ms=int((time.perf_counter() - start) * 1000),
    )
