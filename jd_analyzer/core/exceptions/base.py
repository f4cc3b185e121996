"""
Base Exception Class

This module contains the normalized error every failure in the pipeline is
coerced to before it leaves the core. Specialized exceptions live in their
themed modules and only pin a category, a default code and a default
retryability.
"""

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Failure taxonomy shared by every stage of the pipeline."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    QUOTA = "quota"
    NETWORK = "network"
    SERVER = "server"
    VALIDATION = "validation"


class AnalysisError(Exception):
    """
    Base exception for all analysis pipeline errors (the normalized error).

    All custom exceptions inherit from this class to enable:
    - One shape for every failure crossing a component boundary
    - Retry decisions driven by `retryable` and `retry_after_ms`
    - Request id correlation in logs
    - Rich context for rendering an actionable message

    Attributes:
        code: Stable machine-readable error code
        message: Human-readable error message
        category: ErrorCategory of the failure
        retryable: Whether the retry strategy may attempt the call again
        retry_after_ms: Server or limiter supplied wait hint
        request_id: Request id for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise RateLimitExceededError(
            "Rate limit exceeded. Try again in 12 seconds",
            retry_after_ms=11_500,
            details={"max_requests": 60, "window_ms": 60_000},
        )
    """

    default_code: str = "SERVICE_ERROR"
    default_category: ErrorCategory = ErrorCategory.SERVER
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        *,
        category: ErrorCategory | str | None = None,
        retryable: bool | None = None,
        retry_after_ms: int | None = None,
        request_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.category = ErrorCategory(category) if category else self.default_category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.retry_after_ms = max(0, int(retry_after_ms)) if retry_after_ms is not None else None
        self.request_id = request_id
        self.details = (details or {}).copy()  # Create a copy to prevent external modification
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for logging/UI rendering.

        Returns:
            Dict with error_type, code, message, category, retryable,
            retry_after_ms, request_id and details
        """
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "retry_after_ms": self.retry_after_ms,
            "request_id": self.request_id,
            "details": self.details,
        }

    def with_suggestion(self, suggestion: str) -> "AnalysisError":
        """
        Add a suggestion to help users act on the error.

        Returns:
            Self (for method chaining)
        """
        self.details["suggestion"] = suggestion
        return self

    def with_context(self, **context) -> "AnalysisError":
        """
        Add additional context to the error details.

        Returns:
            Self (for method chaining)
        """
        self.details.update(context)
        return self

    def __repr__(self) -> str:
        retry_str = f", retry_after_ms={self.retry_after_ms}" if self.retry_after_ms is not None else ""
        details_str = f", details={self.details}" if self.details else ""
        return (
            f"{self.__class__.__name__}(code='{self.code}', message='{self.message}', "
            f"category='{self.category.value}', retryable={self.retryable}{retry_str}{details_str})"
        )

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: str | None = None,
        code: str | None = None,
        **kwargs,
    ) -> "AnalysisError":
        """
        Create an error of this class from another exception.

        Useful for wrapping third-party exceptions at a boundary crossing.

        Example:
            >>> try:
            ...     await redis.get(key)
            ... except RedisError as e:
            ...     raise StoreError.from_exception(e, operation="get")
        """
        error_message = message or str(exc) or exc.__class__.__name__
        init_kwargs = {
            k: kwargs.pop(k)
            for k in ("category", "retryable", "retry_after_ms", "request_id")
            if k in kwargs
        }
        error_details = {
            "original_error": exc.__class__.__name__,
            "original_message": str(exc),
            **kwargs,
        }
        return cls(error_message, code, details=error_details, **init_kwargs)


class ConfigurationError(AnalysisError):
    """Raised when configuration is invalid or missing."""

    default_code = "CONFIGURATION_ERROR"
    default_category = ErrorCategory.VALIDATION
    default_retryable = False


def coerce_error(exc: BaseException) -> AnalysisError:
    """
    Coerce any exception into the normalized AnalysisError shape.

    Unknown exceptions become non-retryable server errors so a programming
    error never triggers a retry storm.
    """
    if isinstance(exc, AnalysisError):
        return exc

    return AnalysisError.from_exception(
        exc,
        code="UNKNOWN_ERROR",
        category=ErrorCategory.SERVER,
        retryable=False,
    )
