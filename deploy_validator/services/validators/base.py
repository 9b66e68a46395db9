"""
Common validator contract and helpers.

Every category validator receives the same ValidationContext and returns a
CategorySummary. Per-item failures never escape a validator: they become
`fail` (target answered but broke a rule) or `error` (no verdict) results.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple, Type
from urllib.parse import ParseResult, urljoin, urlparse

import httpx

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import (
    CategorySummary,
    ResultStatus,
    UrlSample,
    ValidationResult,
)
from deploy_validator.services.retry import (
    DEFAULT_RETRY_OPTIONS,
    RetryOptions,
    fetch_with_retry,
)
from deploy_validator.services.url_sampler import UrlSampleSet
from deploy_validator.utils.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationContext:
    """Everything a validator may use during a run."""
    base_url: str
    timeout_ms: int
    concurrency: int
    client: httpx.AsyncClient
    samples: UrlSampleSet
    settings: Settings
    retry_options: RetryOptions = DEFAULT_RETRY_OPTIONS
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    known_paths: Set[str] = field(default_factory=set)

    def __post_init__(self):
        if not self.known_paths:
            self.known_paths = {normalize_path(s.url) for s in self.samples.pages}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        samples: UrlSampleSet,
        **kwargs
    ) -> "ValidationContext":
        return cls(
            base_url=settings.base_url,
            timeout_ms=settings.VALIDATION_TIMEOUT,
            concurrency=settings.VALIDATION_CONCURRENCY,
            client=client,
            samples=samples,
            settings=settings,
            **kwargs
        )

    def full_url(self, url: str) -> str:
        return full_url(self.base_url, url)

    @property
    def locales(self) -> List[str]:
        return list(self.settings.LOCALES)


class CategoryValidator(ABC):
    """
    One validation category.

    Subclasses declare their registry metadata as class attributes and
    implement validate().
    """

    category: str
    display_name: str
    default_threshold: ThresholdConfig
    remediation: str = ""

    @abstractmethod
    async def validate(self, ctx: ValidationContext) -> CategorySummary:
        """Run the category's checks against the deployment."""

    def summarize(
        self,
        results: Sequence[ValidationResult],
        warned: int = 0,
        details: Optional[Dict[str, Any]] = None
    ) -> CategorySummary:
        summary = CategorySummary.from_results(
            self.category,
            self.display_name,
            results,
            warned=warned,
            details=details,
        )
        logger.info(
            f"{self.display_name}: {summary.passed} passed, "
            f"{summary.failed - summary.errored} failed, {summary.errored} errors"
            + (f", {summary.warned} warnings" if summary.warned else "")
        )
        return summary

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.category}>"


def full_url(base_url: str, url: str) -> str:
    """Resolve a sample URL against the deployment base URL."""
    if url.startswith(("http://", "https://")):
        return url
    return f"{base_url.rstrip('/')}{url}"


def resolve_link(page_url: str, href: str) -> Optional[ParseResult]:
    """Resolve an href found on a page; None if urllib rejects it."""
    try:
        return urlparse(urljoin(page_url, href))
    except ValueError:
        logger.warning(f"Ignoring unparseable URL {href!r} on {page_url}")
        return None


def normalize_path(path: str) -> str:
    """Path form used for known-URL lookups (no query, no trailing slash)."""
    try:
        path = urlparse(path).path or "/"
    except ValueError:
        path = path.split("?", 1)[0].split("#", 1)[0] or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def describe_error(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


def error_result(
    result_cls: Type[ValidationResult],
    url: str,
    error: BaseException,
    start: Optional[float] = None,
    **extra
) -> ValidationResult:
    """Build an `error` result for an item that produced no verdict."""
    return result_cls(
        url=url,
        status=ResultStatus.ERROR,
        error=describe_error(error),
        response_time=elapsed_ms(start) if start is not None else None,
        **extra
    )


def one_per_category_locale(samples: Sequence[UrlSample]) -> List[UrlSample]:
    """First sample of every (category, locale) pair, in input order."""
    seen: Set[Tuple[str, Optional[str]]] = set()
    picked = []
    for sample in samples:
        key = (sample.category.value, sample.locale)
        if key not in seen:
            seen.add(key)
            picked.append(sample)
    return picked


async def fetch_html(ctx: ValidationContext, url: str) -> Tuple[httpx.Response, str, int]:
    """
    GET a page with retry.

    Returns:
        (response, body text, elapsed ms)

    Raises:
        RetryExhaustedError: If every attempt failed
    """
    start = time.perf_counter()
    response = await fetch_with_retry(
        ctx.client,
        ctx.full_url(url),
        ctx.timeout_ms,
        retry_options=ctx.retry_options,
        sleep=ctx.sleep,
    )
    return response, response.text, elapsed_ms(start)
