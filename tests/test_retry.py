"""Tests for the retry engine."""

import httpx
import pytest

from deploy_validator.services.retry import (
    RetryExhaustedError,
    RetryOptions,
    compute_delay,
    fetch_with_retry,
    is_retryable_http_error,
    with_retry,
)

from conftest import no_sleep


class RecordingSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class TestComputeDelay:
    """Tests for exponential backoff."""

    def test_without_jitter_doubles_each_attempt(self):
        """Should double the delay per attempt."""
        options = RetryOptions(base_delay_ms=100, max_delay_ms=100000)
        assert [compute_delay(n, options, jitter=0) for n in (1, 2, 3, 4)] == [100, 200, 400, 800]

    def test_monotonic_for_fixed_jitter(self):
        """Should never shrink the delay as attempts grow."""
        options = RetryOptions(base_delay_ms=1000, max_delay_ms=10000)
        for jitter in (0.0, 0.15, 0.29):
            delays = [compute_delay(n, options, jitter=jitter) for n in range(1, 10)]
            assert delays == sorted(delays)

    def test_capped_at_max_delay(self):
        """Should never exceed max_delay_ms."""
        options = RetryOptions(base_delay_ms=1000, max_delay_ms=10000)
        assert compute_delay(10, options, jitter=0.29) == 10000

    def test_random_jitter_within_bounds(self):
        """Should keep random jitter within [base, base * 1.3)."""
        options = RetryOptions(base_delay_ms=1000, max_delay_ms=100000)
        for _ in range(50):
            delay = compute_delay(1, options)
            assert 1000 <= delay < 1300

    def test_random_jitter_excludes_upper_bound(self, monkeypatch):
        """Should draw jitter from a half-open range that never reaches 0.3."""
        monkeypatch.setattr("deploy_validator.services.retry.random.random", lambda: 0.0)
        options = RetryOptions(base_delay_ms=1000, max_delay_ms=100000)
        assert compute_delay(1, options) == 1000

        monkeypatch.setattr("deploy_validator.services.retry.random.random", lambda: 0.9999999)
        assert compute_delay(1, options) < 1300


class TestWithRetry:
    """Tests for with_retry."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self):
        """Should return immediately on success."""
        sleep = RecordingSleep()

        async def operation():
            return "ok"

        result = await with_retry(operation, lambda e: True, sleep=sleep)

        assert result.success
        assert result.result == "ok"
        assert result.attempts == 1
        assert result.errors == []
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_always_failing_retryable_runs_max_attempts(self):
        """Should make k attempts, record k errors and sleep k-1 times."""
        sleep = RecordingSleep()
        calls = []

        async def operation():
            calls.append(1)
            raise ConnectionError("connection reset by peer")

        result = await with_retry(operation, lambda e: True, RetryOptions(max_attempts=4), sleep=sleep)

        assert not result.success
        assert result.attempts == 4
        assert len(calls) == 4
        assert len(result.errors) == 4
        assert result.errors[0].startswith("Attempt 1:")
        assert len(sleep.calls) == 3

    @pytest.mark.asyncio
    async def test_non_retryable_stops_after_first_attempt(self):
        """Should attempt a fatal error exactly once."""
        sleep = RecordingSleep()
        calls = []

        async def operation():
            calls.append(1)
            raise ValueError("bad input")

        result = await with_retry(operation, lambda e: False, sleep=sleep)

        assert not result.success
        assert len(calls) == 1
        assert result.attempts == 1
        assert result.errors == ["Attempt 1: bad input"]
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        """Should succeed on a later attempt and report the attempt count."""
        outcomes = [RuntimeError("fetch failed"), RuntimeError("fetch failed"), "done"]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        result = await with_retry(operation, lambda e: True, sleep=no_sleep)

        assert result.success
        assert result.result == "done"
        assert result.attempts == 3
        assert len(result.errors) == 2


class TestRetryableClassification:
    """Tests for is_retryable_http_error."""

    def test_transport_errors_are_retryable(self):
        """Should retry httpx transport errors."""
        assert is_retryable_http_error(httpx.ConnectError("refused"))

    def test_transient_message_markers(self):
        """Should retry errors carrying transient network markers only."""
        assert is_retryable_http_error(RuntimeError("ECONNRESET while reading"))
        assert not is_retryable_http_error(RuntimeError("invalid certificate"))

    def test_timeouts_follow_option(self):
        """Should retry timeouts only when retry_on_timeout is set."""
        error = httpx.ReadTimeout("slow")
        assert is_retryable_http_error(error, RetryOptions(retry_on_timeout=True))
        assert not is_retryable_http_error(error, RetryOptions(retry_on_timeout=False))


class TestFetchWithRetry:
    """Tests for fetch_with_retry."""

    @pytest.mark.asyncio
    async def test_retries_transient_status_then_succeeds(self):
        """Should return the 200 that follows a 503."""
        statuses = [503, 200]

        def handler(request):
            return httpx.Response(statuses.pop(0))

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await fetch_with_retry(client, "https://site.test/x", 1000, sleep=no_sleep)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_returns_non_retryable_status(self):
        """Should return a 404 to the caller without retrying."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await fetch_with_retry(client, "https://site.test/x", 1000, sleep=no_sleep)

        assert response.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_exhaustion_names_every_attempt(self):
        """Should raise with one error per attempt."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await fetch_with_retry(client, "https://site.test/x", 1000, sleep=no_sleep)

        assert exc_info.value.attempts == 3
        assert len(exc_info.value.errors) == 3
        assert "Timeout after 1000ms" in str(exc_info.value)
