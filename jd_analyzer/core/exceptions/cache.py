"""
Cache-Related Exceptions

Durable-store failures are raised by store implementations and handled
inside the cache layer; the memory tier keeps working when they occur.
"""

from jd_analyzer.core.exceptions.base import AnalysisError, ErrorCategory


class CacheError(AnalysisError):
    """Base exception for cache-related errors."""

    default_code = "CACHE_ERROR"
    default_category = ErrorCategory.SERVER
    default_retryable = True


class StoreError(CacheError):
    """
    Raised when a durable store operation fails.

    Common causes:
    - Redis server is down
    - Corrupt persisted record
    """

    default_code = "STORE_ERROR"
