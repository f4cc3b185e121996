"""
Validation Exceptions
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class ValidationError(AnalysisError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors. Validation
    failures are never retried and never sent to the provider.
    """

    default_code = "INVALID_REQUEST"
    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidInputError(ValidationError):
    """
    Raised when input validation fails.

    Common causes:
    - Empty or whitespace-only content
    - Content longer than the maximum length
    - Unknown analysis type
    """
