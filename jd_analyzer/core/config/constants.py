"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the job-description analysis pipeline.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Per-call pipeline stages.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}

    Each stage is one state of the analyze() state machine:
    CacheCheck -> RateCheck -> CostCheck -> Call -> Record -> CacheWrite -> Done.
    Cross-cutting concerns use alphabetic prefixes.
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    REQUEST_VALIDATION = "1.0_REQUEST_VALIDATION"
    CACHE_CHECK = "2.0_CACHE_CHECK"
    RATE_CHECK = "3.0_RATE_CHECK"
    COST_CHECK = "4.0_COST_CHECK"
    PROVIDER_CALL = "5.0_PROVIDER_CALL"
    USAGE_RECORD = "6.0_USAGE_RECORD"
    CACHE_WRITE = "7.0_CACHE_WRITE"
    DONE = "8.0_DONE"

    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    RETRY = "R_RETRY_LOGIC"
    FALLBACK = "F_FALLBACK"
    DURABLE_STORE = "S_DURABLE_STORE"


# ============================================================================
# Circuit Breaker States
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: Testing recovery, exactly one trial request
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Cache levels.

    MEMORY: In-process LRU cache (fastest)
    DURABLE: Key/value store that survives restarts
    """

    MEMORY = "memory"
    DURABLE = "durable"
    MISS = "miss"


class CacheBackend(str, Enum):
    """Durable store implementations selectable from configuration."""

    MEMORY = "memory"
    REDIS = "redis"


# ============================================================================
# Health
# ============================================================================


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


# ============================================================================
# Request limits
# ============================================================================

MAX_CONTENT_LENGTH = 10_000

# Rough characters-per-token ratio used for pre-call estimation
CHARS_PER_TOKEN = 4

# Failure ratio above which the service reports itself degraded
HIGH_FAILURE_RATIO = 0.5

# Number of response-time samples kept for performance stats
RESPONSE_TIME_SAMPLES = 1000

# Suggestion text returned with degraded (fallback) results
FALLBACK_SUGGESTION = "The analysis service is temporarily unavailable, please retry later"

# ============================================================================
# Key prefixes
# ============================================================================

CACHE_KEY_PREFIX = "analysis"
REDIS_KEY_PREFIX = "jdcache"
