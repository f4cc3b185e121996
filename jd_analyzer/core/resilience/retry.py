"""
Retry Strategy

Bounded retries with exponential backoff and jitter, driven by tenacity.

MECHANISM OF ACTION:
-------------------
1.  **Attempts**: the callback runs up to `max_retries + 1` times.
2.  **Retry predicate**: only errors whose normalized form is `retryable`
    are retried; anything else stops the loop immediately.
3.  **Delay** for attempt n (0-indexed):
        min(max_delay, retry_after_ms ?? base_delay * multiplier**n * jitter)
    A server-supplied `retry_after_ms` always wins over computed backoff.
4.  **Fallback**: once attempts are exhausted (or a non-retryable error
    stopped the loop), an optional fallback producer gets the last error and
    a RetryContext. If the fallback raises, the original last error is
    re-raised so the root cause is never masked.
"""

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from jd_analyzer.core.config.constants import Stage
from jd_analyzer.core.exceptions import AnalysisError, coerce_error
from jd_analyzer.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000
    backoff_multiplier: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings) -> "RetryConfig":
        retry = settings.retry
        return cls(
            max_retries=retry.MAX_RETRIES,
            base_delay_ms=retry.BASE_DELAY_MS,
            max_delay_ms=retry.MAX_DELAY_MS,
            backoff_multiplier=retry.BACKOFF_MULTIPLIER,
            jitter=retry.JITTER,
        )


@dataclass(frozen=True)
class RetryContext:
    """Passed to the fallback producer."""

    attempts: int
    max_attempts: int
    last_error: AnalysisError
    elapsed_ms: float


RetryCallback = Callable[[], Awaitable[T]]
FallbackCallback = Callable[[AnalysisError, RetryContext], Awaitable[T]]


def _is_retryable(exc: BaseException) -> bool:
    return coerce_error(exc).retryable


class RetryStrategy:
    """
    Executes a callback with bounded retries.

    Usage:
        strategy = RetryStrategy(RetryConfig(max_retries=2, jitter=False))
        result = await strategy.execute(call_provider, fallback=degraded_result)
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_fn: Callable[[], float] = random.random,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._random = random_fn

    def calculate_delay_ms(self, attempt: int, error: AnalysisError) -> float:
        """Delay before the attempt that follows 0-indexed `attempt`."""
        if error.retry_after_ms is not None:
            return min(float(error.retry_after_ms), self.config.max_delay_ms)

        delay = self.config.base_delay_ms * (self.config.backoff_multiplier ** attempt)
        if self.config.jitter:
            # uniform(0.5, 1.0) spreads synchronized retries apart
            delay *= 0.5 + self._random() * 0.5

        return min(delay, self.config.max_delay_ms)

    def _wait(self, retry_state: RetryCallState) -> float:
        error = coerce_error(retry_state.outcome.exception())
        return self.calculate_delay_ms(retry_state.attempt_number - 1, error) / 1000.0

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = coerce_error(retry_state.outcome.exception())
        log_stage(
            logger,
            Stage.RETRY,
            "Retrying after failure",
            level="warning",
            attempt=retry_state.attempt_number,
            max_attempts=self.config.max_retries + 1,
            delay_ms=round(retry_state.next_action.sleep * 1000, 1) if retry_state.next_action else None,
            error_code=error.code,
            category=error.category.value,
        )

    async def execute(
        self,
        callback: RetryCallback[T],
        fallback: FallbackCallback[T] | None = None,
    ) -> T:
        max_attempts = self.config.max_retries + 1
        start = time.monotonic()
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return await callback()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return await retrying(attempt)
        except Exception as exc:
            failure = exc

        last_error = coerce_error(failure)

        if fallback is not None:
            context = RetryContext(
                attempts=attempts,
                max_attempts=max_attempts,
                last_error=last_error,
                elapsed_ms=(time.monotonic() - start) * 1000.0,
            )
            try:
                return await fallback(last_error, context)
            except Exception as fallback_error:
                logger.debug(
                    "Fallback declined, re-raising original error",
                    fallback_error=type(fallback_error).__name__,
                    error_code=last_error.code,
                )

        if last_error is failure:
            raise last_error
        raise last_error from failure
