"""
Circuit Breaker

In-process, three-state circuit breaker guarding the remote analysis call.

MECHANISM OF ACTION:
-------------------
1.  **CLOSED**: The provider is healthy. Requests are allowed.
    - On Failure: failure counter increments, last failure time is stamped.
    - On Success: failure counter resets to 0.
    - Threshold Reached: failures >= threshold moves the state to OPEN.

2.  **OPEN**: The provider is considered down. Requests are blocked
    immediately (fail fast) with a retryable `CircuitBreakerOpenError`
    carrying the remaining cooldown as `retry_after_ms`. The callback is
    not invoked and the rejection is not counted as an attempt.

3.  **HALF-OPEN**: Once the cooldown has elapsed, exactly ONE trial request
    is let through. Concurrent callers keep failing fast while it runs.
    - On Success: back to CLOSED with failure counter 0.
    - On Failure: back to OPEN and the cooldown restarts.

All state mutations happen under one asyncio.Lock, so two simultaneous
failures can never both read the same counter value.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from jd_analyzer.core.clock import Clock, monotonic_ms
from jd_analyzer.core.config.constants import CircuitState, Stage
from jd_analyzer.core.exceptions import CircuitBreakerOpenError
from jd_analyzer.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitBreaker:
    """
    Usage:
        breaker = CircuitBreaker(failure_threshold=5, cooldown_ms=60_000)
        result = await breaker.execute(lambda: client.analyze(request))
    """

    def __init__(
        self,
        name: str = "analysis-api",
        failure_threshold: int = 5,
        cooldown_ms: int = 60000,
        clock: Clock = monotonic_ms,
    ):
        self.name = name
        self._failure_threshold = failure_threshold
        self._cooldown_ms = cooldown_ms
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at = 0.0
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Clock = monotonic_ms) -> "CircuitBreaker":
        cb = settings.circuit_breaker
        return cls(
            failure_threshold=cb.CIRCUIT_FAILURE_THRESHOLD,
            cooldown_ms=cb.CIRCUIT_COOLDOWN_MS,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def remaining_cooldown_ms(self) -> int:
        if self._state != CircuitState.OPEN:
            return 0
        elapsed = self._clock() - self._last_failure_at
        return max(0, math.ceil(self._cooldown_ms - elapsed))

    def is_open(self) -> bool:
        """True while the breaker would reject a call right now."""
        return self._state == CircuitState.OPEN and self.remaining_cooldown_ms() > 0

    def get_state(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "failures": self._failure_count,
            "last_failure_at": self._last_failure_at,
            "retry_after_ms": self.remaining_cooldown_ms(),
        }

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self, callback: Callable[[], Awaitable[T]]) -> T:
        is_probe = await self._acquire()

        try:
            result = await callback()
        except asyncio.CancelledError:
            await self._release_probe(is_probe)
            raise
        except Exception:
            await self._record_failure()
            raise

        await self._record_success()
        return result

    async def _acquire(self) -> bool:
        """Admit a call or fail fast. Returns True when the call is the half-open probe."""
        async with self._lock:
            if self._state == CircuitState.OPEN:
                elapsed = self._clock() - self._last_failure_at
                if elapsed < self._cooldown_ms:
                    retry_after = math.ceil(self._cooldown_ms - elapsed)
                    raise CircuitBreakerOpenError(
                        "Circuit breaker is open, service temporarily unavailable",
                        retry_after_ms=retry_after,
                        details={"circuit": self.name, "failures": self._failure_count},
                    )
                self._transition(CircuitState.HALF_OPEN)

            if self._state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitBreakerOpenError(
                        "Circuit breaker is half-open, a trial request is already in flight",
                        details={"circuit": self.name, "failures": self._failure_count},
                    )
                self._probe_in_flight = True
                return True

            return False

    async def _release_probe(self, is_probe: bool) -> None:
        if is_probe:
            async with self._lock:
                self._probe_in_flight = False

    async def _record_success(self) -> None:
        async with self._lock:
            if self._state != CircuitState.CLOSED:
                log_stage(logger, Stage.CIRCUIT_BREAKER, "Circuit recovered", circuit=self.name)
                self._transition(CircuitState.CLOSED)
            self._failure_count = 0
            self._probe_in_flight = False

    async def _record_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_at = self._clock()
            was_probe = self._state == CircuitState.HALF_OPEN
            self._probe_in_flight = False

            logger.warning(
                "Circuit recorded failure",
                circuit=self.name,
                failures=self._failure_count,
                threshold=self._failure_threshold,
            )

            if was_probe or self._failure_count >= self._failure_threshold:
                if self._state != CircuitState.OPEN:
                    log_stage(
                        logger,
                        Stage.CIRCUIT_BREAKER,
                        "Circuit tripped, opening",
                        level="error",
                        circuit=self.name,
                        failures=self._failure_count,
                        cooldown_ms=self._cooldown_ms,
                    )
                self._state = CircuitState.OPEN

    def _transition(self, state: CircuitState) -> None:
        if state != self._state:
            logger.info(
                "Circuit changed state",
                circuit=self.name,
                from_state=self._state.value,
                to_state=state.value,
            )
        self._state = state

    def reset(self) -> None:
        """Force CLOSED and zero the counters (tests and administrative recovery)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at = 0.0
        self._probe_in_flight = False
