from .circuit_breaker import CircuitBreaker
from .cost_controller import CostController, CostLedger, estimate_tokens
from .rate_limiter import RateLimiter
from .retry import RetryConfig, RetryContext, RetryStrategy

__all__ = [
    "CircuitBreaker",
    "CostController",
    "CostLedger",
    "RateLimiter",
    "RetryConfig",
    "RetryContext",
    "RetryStrategy",
    "estimate_tokens",
]
