"""
Provider Exceptions

Errors raised while talking to the remote analysis API. The transport layer
maps HTTP statuses and client-library exceptions onto these classes.
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class ProviderError(AnalysisError):
    """Base exception for remote analysis API errors."""

    default_code = "PROVIDER_ERROR"
    default_category = ErrorCategory.SERVER
    default_retryable = True


class AuthenticationError(ProviderError):
    """
    Raised when the provider rejects the credentials.

    Common causes:
    - Invalid or expired API key
    - Insufficient permissions
    """

    default_code = "AUTH_FAILED"
    default_category = ErrorCategory.AUTH
    default_retryable = False


class ProviderQuotaError(ProviderError):
    """Raised when the provider account is out of credit (HTTP 402)."""

    default_code = "QUOTA_EXCEEDED"
    default_category = ErrorCategory.QUOTA
    default_retryable = False


class ProviderRequestError(ProviderError):
    """Raised when the provider refuses a malformed request (other 4xx)."""

    default_code = "INVALID_PROVIDER_REQUEST"
    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class ServerError(ProviderError):
    """Raised on provider 5xx responses."""

    default_code = "SERVER_ERROR"
    default_category = ErrorCategory.SERVER
    default_retryable = True


class InvalidResponseError(ServerError):
    """Raised when the provider answer cannot be parsed into an analysis result."""

    default_code = "INVALID_RESPONSE"


class NetworkError(ProviderError):
    """
    Raised when the provider cannot be reached.

    Common causes:
    - DNS or connection failure
    - Connection reset mid-request
    """

    default_code = "NETWORK_ERROR"
    default_category = ErrorCategory.NETWORK
    default_retryable = True


class RequestTimeoutError(NetworkError):
    """Raised when the remote call exceeds the overall request timeout."""

    default_code = "REQUEST_TIMEOUT"
