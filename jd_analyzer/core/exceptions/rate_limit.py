"""
Rate Limiting Exceptions
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class RateLimitError(AnalysisError):
    """Base exception for rate limiting errors."""

    default_code = "RATE_LIMIT_EXCEEDED"
    default_category = ErrorCategory.RATE_LIMIT
    default_retryable = True


class RateLimitExceededError(RateLimitError):
    """
    Raised when the local limiter or the provider rejects a request for
    exceeding the allowed request rate.

    `retry_after_ms` tells the caller how long to wait before the next
    request can succeed.
    """
