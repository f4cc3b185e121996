#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the whole
analysis pipeline. Every knob of the resilience layer, the caches and the
provider transport lives here so components receive their values from one
place.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped read-only views (settings.retry, settings.cache, ...)
- Easy testing: construct Settings(...) with overrides and inject it
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jd_analyzer.core.config.constants import CacheBackend


class RetrySettings(BaseSettings):
    """
    Retry/backoff configuration.

    Delay for attempt n (0-indexed):
        min(MAX_DELAY_MS, retry_after_ms or BASE_DELAY_MS * BACKOFF_MULTIPLIER ** n * jitter)
    """

    MAX_RETRIES: int = Field(default=3, description="Retries after the first attempt")
    BASE_DELAY_MS: int = Field(default=1000, description="Initial backoff delay")
    MAX_DELAY_MS: int = Field(default=30000, description="Backoff ceiling")
    BACKOFF_MULTIPLIER: float = Field(default=2.0, description="Exponential growth factor")
    JITTER: bool = Field(default=True, description="Scale delays by uniform(0.5, 1.0)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """Circuit breaker thresholds."""

    CIRCUIT_FAILURE_THRESHOLD: int = Field(default=5, description="Failures before opening circuit")
    CIRCUIT_COOLDOWN_MS: int = Field(default=60000, description="Open time before a probe is allowed")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """Sliding-window rate limiting."""

    RATE_MAX_REQUESTS: int = Field(default=60, description="Requests allowed per window")
    RATE_WINDOW_MS: int = Field(default=60000, description="Window size")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CostSettings(BaseSettings):
    """Token-based daily budget."""

    DAILY_COST_LIMIT: float = Field(default=10.0, description="Daily spend ceiling in dollars")
    COST_PER_TOKEN: float = Field(default=0.00003, description="Dollar cost of one token")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """Two-tier response cache configuration."""

    CACHE_MAX_ENTRIES: int = Field(default=100, description="Memory tier capacity")
    CACHE_DEFAULT_TTL_MS: int = Field(default=3600000, description="Entry TTL (1 hour)")
    CACHE_CLEANUP_INTERVAL_MS: int = Field(default=300000, description="Expired-entry sweep interval")
    CACHE_BACKEND: CacheBackend = Field(default=CacheBackend.MEMORY, description="Durable store")
    CACHE_NAMESPACE: str = Field(default="jd-analysis-cache", description="Durable key namespace")
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ProviderSettings(BaseSettings):
    """Remote analysis API configuration."""

    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="Model used for analysis")
    MAX_TOKENS: int = Field(default=2000, description="Completion token ceiling")
    TEMPERATURE: float = Field(default=0.3, description="Sampling temperature")
    REQUEST_TIMEOUT_MS: int = Field(default=30000, description="Overall remote call timeout")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        settings = Settings(RATE_MAX_REQUESTS=3, RATE_WINDOW_MS=1000)
        service = create_analysis_service(settings)

        settings.retry.MAX_RETRIES
        settings.cache.CACHE_MAX_ENTRIES
    """

    # Retry
    MAX_RETRIES: int = Field(default=3, ge=0, description="Retries after the first attempt")
    BASE_DELAY_MS: int = Field(default=1000, ge=0, description="Initial backoff delay")
    MAX_DELAY_MS: int = Field(default=30000, ge=0, description="Backoff ceiling")
    BACKOFF_MULTIPLIER: float = Field(default=2.0, description="Exponential growth factor")
    JITTER: bool = Field(default=True, description="Scale delays by uniform(0.5, 1.0)")

    # Circuit breaker
    CIRCUIT_FAILURE_THRESHOLD: int = Field(default=5, gt=0, description="Failures before opening circuit")
    CIRCUIT_COOLDOWN_MS: int = Field(default=60000, ge=0, description="Open time before a probe is allowed")

    # Rate limiting
    RATE_MAX_REQUESTS: int = Field(default=60, gt=0, description="Requests allowed per window")
    RATE_WINDOW_MS: int = Field(default=60000, gt=0, description="Window size")

    # Cost control
    DAILY_COST_LIMIT: float = Field(default=10.0, ge=0, description="Daily spend ceiling in dollars")
    COST_PER_TOKEN: float = Field(default=0.00003, ge=0, description="Dollar cost of one token")

    # Cache
    CACHE_MAX_ENTRIES: int = Field(default=100, gt=0, description="Memory tier capacity")
    CACHE_DEFAULT_TTL_MS: int = Field(default=3600000, gt=0, description="Entry TTL (1 hour)")
    CACHE_CLEANUP_INTERVAL_MS: int = Field(default=300000, gt=0, description="Expired-entry sweep interval")
    CACHE_BACKEND: CacheBackend = Field(default=CacheBackend.MEMORY, description="Durable store")
    CACHE_NAMESPACE: str = Field(default="jd-analysis-cache", description="Durable key namespace")
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")

    # Provider
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="Model used for analysis")
    MAX_TOKENS: int = Field(default=2000, gt=0, description="Completion token ceiling")
    TEMPERATURE: float = Field(default=0.3, ge=0, le=2, description="Sampling temperature")
    REQUEST_TIMEOUT_MS: int = Field(default=30000, gt=0, description="Overall remote call timeout")

    # Feature toggles
    ENABLE_CACHE: bool = Field(default=True, description="Serve and store cached results")
    ENABLE_RETRY: bool = Field(default=True, description="Retry retryable failures")
    ENABLE_CIRCUIT_BREAKER: bool = Field(default=True, description="Guard the remote call")
    ENABLE_RATE_LIMIT: bool = Field(default=True, description="Apply the local rate limiter")
    ENABLE_COST_CONTROL: bool = Field(default=True, description="Enforce the daily budget")
    ENABLE_FALLBACK: bool = Field(default=True, description="Answer with a degraded result when the API is down")
    ENABLE_REQUEST_COALESCING: bool = Field(
        default=True, description="Share one upstream call between identical in-flight requests"
    )

    # Health
    HEALTH_WINDOW_SIZE: int = Field(default=100, gt=0, description="Recent outcomes used for failure ratio")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("BACKOFF_MULTIPLIER")
    @classmethod
    def validate_multiplier(cls, v):
        """Backoff must not shrink between attempts."""
        if v < 1:
            raise ValueError("BACKOFF_MULTIPLIER must be >= 1")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @property
    def retry(self) -> RetrySettings:
        """Get retry settings."""
        return RetrySettings(
            MAX_RETRIES=self.MAX_RETRIES,
            BASE_DELAY_MS=self.BASE_DELAY_MS,
            MAX_DELAY_MS=self.MAX_DELAY_MS,
            BACKOFF_MULTIPLIER=self.BACKOFF_MULTIPLIER,
            JITTER=self.JITTER,
        )

    @property
    def circuit_breaker(self) -> CircuitBreakerSettings:
        """Get circuit breaker settings."""
        return CircuitBreakerSettings(
            CIRCUIT_FAILURE_THRESHOLD=self.CIRCUIT_FAILURE_THRESHOLD,
            CIRCUIT_COOLDOWN_MS=self.CIRCUIT_COOLDOWN_MS,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_MAX_REQUESTS=self.RATE_MAX_REQUESTS,
            RATE_WINDOW_MS=self.RATE_WINDOW_MS,
        )

    @property
    def cost(self) -> CostSettings:
        """Get cost control settings."""
        return CostSettings(
            DAILY_COST_LIMIT=self.DAILY_COST_LIMIT,
            COST_PER_TOKEN=self.COST_PER_TOKEN,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_MAX_ENTRIES=self.CACHE_MAX_ENTRIES,
            CACHE_DEFAULT_TTL_MS=self.CACHE_DEFAULT_TTL_MS,
            CACHE_CLEANUP_INTERVAL_MS=self.CACHE_CLEANUP_INTERVAL_MS,
            CACHE_BACKEND=self.CACHE_BACKEND,
            CACHE_NAMESPACE=self.CACHE_NAMESPACE,
            REDIS_URL=self.REDIS_URL,
        )

    @property
    def provider(self) -> ProviderSettings:
        """Get provider settings."""
        return ProviderSettings(
            OPENAI_API_KEY=self.OPENAI_API_KEY,
            OPENAI_BASE_URL=self.OPENAI_BASE_URL,
            OPENAI_MODEL=self.OPENAI_MODEL,
            MAX_TOKENS=self.MAX_TOKENS,
            TEMPERATURE=self.TEMPERATURE,
            REQUEST_TIMEOUT_MS=self.REQUEST_TIMEOUT_MS,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the process-default settings (built lazily from the environment).

    Components receive their Settings through their constructors; this is
    only the default used when nothing is injected.
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
