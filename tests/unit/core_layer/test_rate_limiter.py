"""
Unit Tests for RateLimiter

Tests the sliding window: admission, rejection with a retry hint, window
expiry and the side-effect free remaining-requests read.
"""

import pytest

from jd_analyzer.core.exceptions import ErrorCategory, RateLimitExceededError
from jd_analyzer.core.resilience.rate_limiter import RateLimiter


@pytest.fixture
def limiter(fake_clock):
    return RateLimiter(max_requests=3, window_ms=1000, clock=fake_clock)


@pytest.mark.unit
class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_fourth_call_in_window_rejected(self, limiter, fake_clock):
        for _ in range(3):
            await limiter.check_limit()
            fake_clock.advance(100)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check_limit()

        error = exc_info.value
        assert error.category == ErrorCategory.RATE_LIMIT
        assert error.retryable is True
        # oldest request at t0, now t0 + 300
        assert error.retry_after_ms == 700
        assert error.message == "Rate limit exceeded. Try again in 1 seconds"

    @pytest.mark.asyncio
    async def test_calls_succeed_after_window_elapses(self, limiter, fake_clock):
        for _ in range(3):
            await limiter.check_limit()

        fake_clock.advance(1000)

        assert await limiter.check_limit() == 2

    @pytest.mark.asyncio
    async def test_sliding_window_frees_one_slot_at_a_time(self, limiter, fake_clock):
        await limiter.check_limit()
        fake_clock.advance(500)
        await limiter.check_limit()
        await limiter.check_limit()

        fake_clock.advance(500)  # first request leaves the window

        await limiter.check_limit()
        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check_limit()
        assert exc_info.value.retry_after_ms == 500

    @pytest.mark.asyncio
    async def test_rejected_call_is_not_recorded(self, limiter, fake_clock):
        for _ in range(3):
            await limiter.check_limit()
        for _ in range(5):
            with pytest.raises(RateLimitExceededError):
                await limiter.check_limit()

        fake_clock.advance(1000)

        assert limiter.get_remaining_requests() == 3

    @pytest.mark.asyncio
    async def test_check_limit_returns_remaining(self, limiter):
        assert await limiter.check_limit() == 2
        assert await limiter.check_limit() == 1
        assert await limiter.check_limit() == 0

    @pytest.mark.asyncio
    async def test_remaining_requests_is_pure_read(self, limiter, fake_clock):
        await limiter.check_limit()
        await limiter.check_limit()

        assert limiter.get_remaining_requests() == 1
        assert limiter.get_remaining_requests() == 1
        assert len(limiter._timestamps) == 2

        fake_clock.advance(1000)

        assert limiter.get_remaining_requests() == 3
        # expired timestamps are only pruned by check_limit()
        assert len(limiter._timestamps) == 2

    @pytest.mark.asyncio
    async def test_reset_clears_window(self, limiter):
        for _ in range(3):
            await limiter.check_limit()

        limiter.reset()

        assert limiter.get_remaining_requests() == 3

    def test_from_settings(self, settings_factory, fake_clock):
        limiter = RateLimiter.from_settings(settings_factory(RATE_MAX_REQUESTS=7, RATE_WINDOW_MS=2000), clock=fake_clock)

        assert limiter.max_requests == 7
        assert limiter.window_ms == 2000
