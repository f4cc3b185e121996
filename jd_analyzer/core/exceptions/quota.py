"""
Cost Budget Exceptions
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class QuotaExceededError(AnalysisError):
    """
    Raised when a call would push spend past the daily budget.

    Never retried and never answered with a degraded fallback: spending more
    to work around a budget cap is not allowed.
    """

    default_code = "DAILY_COST_LIMIT_EXCEEDED"
    default_category = ErrorCategory.QUOTA
    default_retryable = False
