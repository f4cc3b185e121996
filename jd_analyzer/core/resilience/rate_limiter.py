"""
Rate Limiter

Sliding-window limiter in front of the analysis API.

Algorithm:
1. Prune timestamps that fell out of the trailing window
2. If the window is full, reject with the time until the oldest request
   leaves the window (`retry_after_ms`)
3. Otherwise record `now` and return the remaining request count

The limiter rejects immediately with a retry hint instead of blocking the
caller; the retry strategy decides whether to wait.
"""

import asyncio
import math
from collections import deque

from jd_analyzer.core.clock import Clock, monotonic_ms
from jd_analyzer.core.config.constants import Stage
from jd_analyzer.core.exceptions import RateLimitExceededError
from jd_analyzer.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


class RateLimiter:
    def __init__(self, max_requests: int = 60, window_ms: int = 60000, clock: Clock = monotonic_ms):
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Clock = monotonic_ms) -> "RateLimiter":
        rl = settings.rate_limit
        return cls(max_requests=rl.RATE_MAX_REQUESTS, window_ms=rl.RATE_WINDOW_MS, clock=clock)

    async def check_limit(self) -> int:
        """
        Admit one request or raise RateLimitExceededError.

        Returns:
            Requests still available in the current window after this one
        """
        async with self._lock:
            now = self._clock()
            while self._timestamps and now - self._timestamps[0] >= self.window_ms:
                self._timestamps.popleft()

            if len(self._timestamps) >= self.max_requests:
                retry_after = max(0, math.ceil(self.window_ms - (now - self._timestamps[0])))
                log_stage(
                    logger,
                    Stage.RATE_CHECK,
                    "Rate limit exceeded",
                    level="warning",
                    max_requests=self.max_requests,
                    window_ms=self.window_ms,
                    retry_after_ms=retry_after,
                )
                raise RateLimitExceededError(
                    f"Rate limit exceeded. Try again in {math.ceil(retry_after / 1000)} seconds",
                    retry_after_ms=retry_after,
                    details={"max_requests": self.max_requests, "window_ms": self.window_ms},
                )

            self._timestamps.append(now)
            return self.max_requests - len(self._timestamps)

    def get_remaining_requests(self) -> int:
        # Pure read: counts in-window timestamps without pruning
        now = self._clock()
        in_window = sum(1 for ts in self._timestamps if now - ts < self.window_ms)
        return max(0, self.max_requests - in_window)

    def reset(self) -> None:
        self._timestamps.clear()
