"""
Unit Tests for RetryStrategy

Tests attempt bounds, backoff arithmetic, retry_after precedence and the
fallback contract (a failing fallback never masks the root cause).
"""

import time

import pytest

from jd_analyzer.core.exceptions import (
    AnalysisError,
    AuthenticationError,
    ErrorCategory,
    RateLimitExceededError,
    ServerError,
)
from jd_analyzer.core.resilience.retry import RetryConfig, RetryContext, RetryStrategy


class Flaky:
    """Callback failing with `errors` in order, then returning `value`."""

    def __init__(self, *errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


@pytest.mark.unit
class TestRetryDelay:
    def test_exponential_backoff_without_jitter(self):
        strategy = RetryStrategy(RetryConfig(base_delay_ms=100, backoff_multiplier=2, jitter=False))
        error = ServerError("boom")

        assert strategy.calculate_delay_ms(0, error) == 100
        assert strategy.calculate_delay_ms(1, error) == 200
        assert strategy.calculate_delay_ms(2, error) == 400

    def test_delay_capped_at_max_delay(self):
        strategy = RetryStrategy(RetryConfig(base_delay_ms=1000, max_delay_ms=3000, jitter=False))

        assert strategy.calculate_delay_ms(5, ServerError("boom")) == 3000

    def test_jitter_scales_between_half_and_full(self):
        low = RetryStrategy(RetryConfig(base_delay_ms=1000, jitter=True), random_fn=lambda: 0.0)
        high = RetryStrategy(RetryConfig(base_delay_ms=1000, jitter=True), random_fn=lambda: 1.0)

        assert low.calculate_delay_ms(0, ServerError("x")) == 500
        assert high.calculate_delay_ms(0, ServerError("x")) == 1000

    def test_retry_after_takes_precedence(self):
        strategy = RetryStrategy(RetryConfig(base_delay_ms=100, jitter=False))
        error = RateLimitExceededError("slow down", retry_after_ms=2500)

        assert strategy.calculate_delay_ms(0, error) == 2500

    def test_retry_after_still_capped(self):
        strategy = RetryStrategy(RetryConfig(max_delay_ms=1000, jitter=False))
        error = RateLimitExceededError("slow down", retry_after_ms=60_000)

        assert strategy.calculate_delay_ms(0, error) == 1000


@pytest.mark.unit
class TestRetryExecution:
    @pytest.mark.asyncio
    async def test_returns_first_success(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=3, jitter=False), sleep=recording_sleep)
        callback = Flaky()

        assert await strategy.execute(callback) == "ok"
        assert callback.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_retryable_failures(self, recording_sleep):
        strategy = RetryStrategy(
            RetryConfig(max_retries=3, base_delay_ms=100, jitter=False), sleep=recording_sleep
        )
        callback = Flaky(ServerError("500"), ServerError("502"))

        assert await strategy.execute(callback) == "ok"
        assert callback.calls == 3
        assert recording_sleep.delays == [0.1, 0.2]

    @pytest.mark.asyncio
    async def test_attempts_bounded_by_max_retries(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=2, jitter=False), sleep=recording_sleep)
        callback = Flaky(*[ServerError(f"fail {i}") for i in range(10)])

        with pytest.raises(ServerError) as exc_info:
            await strategy.execute(callback)

        assert callback.calls == 3
        assert str(exc_info.value) == "fail 2"

    @pytest.mark.asyncio
    async def test_non_retryable_stops_immediately(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=3), sleep=recording_sleep)
        callback = Flaky(AuthenticationError("bad key"))

        with pytest.raises(AuthenticationError):
            await strategy.execute(callback)

        assert callback.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_unknown_exception_is_normalized_and_not_retried(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=3), sleep=recording_sleep)
        callback = Flaky(KeyError("missing"))

        with pytest.raises(AnalysisError) as exc_info:
            await strategy.execute(callback)

        assert callback.calls == 1
        assert exc_info.value.code == "UNKNOWN_ERROR"
        assert exc_info.value.category == ErrorCategory.SERVER
        assert isinstance(exc_info.value.__cause__, KeyError)

    @pytest.mark.asyncio
    async def test_retry_after_drives_sleep(self, recording_sleep):
        strategy = RetryStrategy(
            RetryConfig(max_retries=1, base_delay_ms=10, max_delay_ms=5000, jitter=False),
            sleep=recording_sleep,
        )
        callback = Flaky(RateLimitExceededError("429", retry_after_ms=1500))

        await strategy.execute(callback)

        assert recording_sleep.delays == [1.5]

    @pytest.mark.asyncio
    async def test_backoff_elapses_real_time(self):
        """max_retries=2, base 100ms, multiplier 2, no jitter: at least 100 + 200 ms."""
        strategy = RetryStrategy(
            RetryConfig(max_retries=2, base_delay_ms=100, backoff_multiplier=2, jitter=False)
        )
        callback = Flaky(*[ServerError("down") for _ in range(3)])

        start = time.monotonic()
        with pytest.raises(ServerError):
            await strategy.execute(callback)
        elapsed = time.monotonic() - start

        assert callback.calls == 3
        assert elapsed >= 0.3


@pytest.mark.unit
class TestRetryFallback:
    @pytest.mark.asyncio
    async def test_fallback_result_returned_after_exhaustion(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=2, jitter=False), sleep=recording_sleep)
        seen: list[tuple[AnalysisError, RetryContext]] = []

        async def fallback(error, context):
            seen.append((error, context))
            return "degraded"

        result = await strategy.execute(Flaky(*[ServerError("down") for _ in range(3)]), fallback)

        assert result == "degraded"
        error, context = seen[0]
        assert error.code == "SERVER_ERROR"
        assert context.attempts == 3
        assert context.max_attempts == 3
        assert context.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_failing_fallback_reraises_original(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=1, jitter=False), sleep=recording_sleep)

        async def fallback(error, context):
            raise RuntimeError("fallback broke")

        with pytest.raises(ServerError) as exc_info:
            await strategy.execute(Flaky(ServerError("root"), ServerError("root cause")), fallback)

        assert str(exc_info.value) == "root cause"

    @pytest.mark.asyncio
    async def test_fallback_receives_non_retryable_error(self, recording_sleep):
        strategy = RetryStrategy(RetryConfig(max_retries=3), sleep=recording_sleep)
        seen = []

        async def fallback(error, context):
            seen.append(context.attempts)
            raise error

        with pytest.raises(AuthenticationError):
            await strategy.execute(Flaky(AuthenticationError("bad key")), fallback)

        assert seen == [1]
