"""
Exception Module

Normalized error hierarchy for the analysis pipeline, organized by theme.

Module Structure:
-----------------
- **base.py**: AnalysisError (the normalized error), ErrorCategory,
  ConfigurationError and coerce_error()
- **provider.py**: Remote API errors (auth, network, server, ...)
- **rate_limit.py**: Rate limiting errors
- **quota.py**: Cost budget errors
- **circuit_breaker.py**: Circuit breaker errors
- **validation.py**: Request validation errors
- **cache.py**: Cache and durable store errors

Usage:
------
```python
from jd_analyzer.core.exceptions import AnalysisError, RateLimitExceededError

try:
    result = await service.analyze(content, "jd-analysis")
except AnalysisError as e:
    if e.retry_after_ms:
        ...
```
"""

from jd_analyzer.core.exceptions.base import (
    AnalysisError,
    ConfigurationError,
    ErrorCategory,
    coerce_error,
)
from jd_analyzer.core.exceptions.cache import CacheError, StoreError
from jd_analyzer.core.exceptions.circuit_breaker import (
    CircuitBreakerError,
    CircuitBreakerOpenError,
)
from jd_analyzer.core.exceptions.provider import (
    AuthenticationError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    ProviderQuotaError,
    ProviderRequestError,
    RequestTimeoutError,
    ServerError,
)
from jd_analyzer.core.exceptions.quota import QuotaExceededError
from jd_analyzer.core.exceptions.rate_limit import RateLimitError, RateLimitExceededError
from jd_analyzer.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "AnalysisError",
    "ConfigurationError",
    "ErrorCategory",
    "coerce_error",
    # Cache
    "CacheError",
    "StoreError",
    # Circuit Breaker
    "CircuitBreakerError",
    "CircuitBreakerOpenError",
    # Provider
    "AuthenticationError",
    "InvalidResponseError",
    "NetworkError",
    "ProviderError",
    "ProviderQuotaError",
    "ProviderRequestError",
    "RequestTimeoutError",
    "ServerError",
    # Quota
    "QuotaExceededError",
    # Rate Limit
    "RateLimitError",
    "RateLimitExceededError",
    # Validation
    "InvalidInputError",
    "ValidationError",
]
