"""
Millisecond clocks.

Components take a clock callable so tests can drive time explicitly.
`monotonic_ms` measures intervals within a process (breaker cooldown, rate
window, backoff); `wall_clock_ms` stamps cache entries that outlive the
process in a durable store.
"""

import time
from collections.abc import Callable

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def wall_clock_ms() -> float:
    return time.time() * 1000.0
