"""
Circuit Breaker Exceptions
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class CircuitBreakerError(AnalysisError):
    """Base exception for circuit breaker errors."""

    default_code = "CIRCUIT_BREAKER_ERROR"
    default_category = ErrorCategory.SERVER
    default_retryable = True


class CircuitBreakerOpenError(CircuitBreakerError):
    """
    Raised when the circuit breaker is open (fail fast).

    Carries the remaining cooldown as `retry_after_ms`. The circuit moves to
    half-open once the cooldown has elapsed, at which point a single trial
    request is let through.
    """

    default_code = "CIRCUIT_BREAKER_OPEN"
