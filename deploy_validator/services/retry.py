"""
Retry with exponential backoff for transient failures.

with_retry() wraps any zero-argument coroutine factory; the caller decides
which errors are worth retrying. fetch_with_retry() applies it to a single
HTTP request with a per-attempt deadline.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Substrings of transient network failures seen across HTTP stacks
TRANSIENT_ERROR_MARKERS = (
    "connection reset",
    "econnreset",
    "timed out",
    "etimedout",
    "fetch failed",
    "temporarily unavailable",
)

MAX_JITTER = 0.3


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy."""
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    retryable_statuses: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_on_timeout: bool = True


DEFAULT_RETRY_OPTIONS = RetryOptions()


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a retried operation."""
    success: bool
    attempts: int
    result: Optional[T] = None
    errors: List[str] = field(default_factory=list)


class RetryableStatusError(Exception):
    """HTTP response whose status code is configured as transient."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code} (retryable)")
        self.status_code = status_code


class RequestTimeoutError(Exception):
    """A single attempt exceeded its deadline."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class RetryExhaustedError(Exception):
    """All attempts failed or a non-retryable error stopped the retries."""

    def __init__(self, url: str, attempts: int, errors: List[str]):
        super().__init__(f"Failed after {attempts} attempts: {'; '.join(errors)}")
        self.url = url
        self.attempts = attempts
        self.errors = errors


def compute_delay(
    attempt: int,
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    jitter: Optional[float] = None
) -> float:
    """
    Backoff delay in milliseconds before retrying after `attempt`.

    Args:
        attempt: 1-based number of the attempt that just failed
        options: Retry policy
        jitter: Fraction added on top of the exponential delay; drawn from
            [0, 0.3) when not given

    Returns:
        min(base * 2^(attempt-1) * (1 + jitter), max_delay)
    """
    if jitter is None:
        jitter = random.random() * MAX_JITTER
    delay = options.base_delay_ms * (2 ** (attempt - 1)) * (1 + jitter)
    return min(delay, options.max_delay_ms)


def _error_message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    is_retryable: Callable[[BaseException], bool],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> RetryResult[T]:
    """
    Run an async operation, retrying transient failures with backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        is_retryable: Classifies a raised error; non-retryable errors stop at once
        options: Retry policy (defaults to DEFAULT_RETRY_OPTIONS)
        sleep: Awaitable sleep taking seconds

    Returns:
        RetryResult with the operation's result or every attempt's error
    """
    opts = options or DEFAULT_RETRY_OPTIONS
    errors: List[str] = []
    attempt = 0

    while attempt < opts.max_attempts:
        attempt += 1
        try:
            result = await operation()
            return RetryResult(success=True, attempts=attempt, result=result, errors=errors)
        except Exception as e:
            errors.append(f"Attempt {attempt}: {_error_message(e)}")

            if attempt < opts.max_attempts and is_retryable(e):
                delay_ms = compute_delay(attempt, opts)
                logger.debug(
                    f"Attempt {attempt}/{opts.max_attempts} failed ({_error_message(e)}), "
                    f"retrying in {delay_ms:.0f}ms"
                )
                await sleep(delay_ms / 1000)
            else:
                break

    return RetryResult(success=False, attempts=attempt, errors=errors)


def is_retryable_http_error(error: BaseException, options: RetryOptions = DEFAULT_RETRY_OPTIONS) -> bool:
    """Default classification for HTTP attempts."""
    if isinstance(error, RetryableStatusError):
        return True
    if isinstance(error, (RequestTimeoutError, httpx.TimeoutException)):
        return options.retry_on_timeout
    if isinstance(error, httpx.TransportError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


async def timed_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout_ms: int,
    headers: Optional[Dict[str, str]] = None,
    follow_redirects: bool = True
) -> httpx.Response:
    """
    Issue one request under a wall-clock deadline.

    Raises:
        RequestTimeoutError: If the request (including body) takes longer than timeout_ms
    """
    timeout_s = timeout_ms / 1000
    try:
        return await asyncio.wait_for(
            client.request(
                method,
                url,
                headers=headers,
                timeout=timeout_s,
                follow_redirects=follow_redirects,
            ),
            timeout=timeout_s,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise RequestTimeoutError(timeout_ms) from e


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    timeout_ms: int,
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    retry_options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
) -> httpx.Response:
    """
    Fetch a URL, retrying timeouts, transport errors and transient statuses.

    Non-retryable responses (e.g. 404) are returned to the caller untouched.

    Raises:
        RetryExhaustedError: If no attempt produced a usable response
    """
    opts = retry_options or DEFAULT_RETRY_OPTIONS

    async def attempt() -> httpx.Response:
        response = await timed_request(client, method, url, timeout_ms, headers=headers)
        if response.status_code in opts.retryable_statuses:
            raise RetryableStatusError(response.status_code)
        return response

    result = await with_retry(
        attempt,
        lambda error: is_retryable_http_error(error, opts),
        opts,
        sleep=sleep,
    )

    if not result.success or result.result is None:
        raise RetryExhaustedError(url, result.attempts, result.errors)

    return result.result
