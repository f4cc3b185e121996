"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from datetime import date
from unittest.mock import AsyncMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from jd_analyzer.core.config.settings import Settings  # noqa: E402
from jd_analyzer.core.resilience import (  # noqa: E402
    CircuitBreaker,
    CostController,
    RateLimiter,
    RetryConfig,
    RetryStrategy,
)
from jd_analyzer.infrastructure.cache import (  # noqa: E402
    InMemoryStore,
    PersistentResponseCache,
    ResponseCache,
)
from jd_analyzer.llm_providers.base_provider import AnalysisClient  # noqa: E402
from jd_analyzer.models.analysis import AnalysisResult  # noqa: E402
from jd_analyzer.services.analysis_service import ResilientAnalysisService  # noqa: E402
from tests.test_fixtures.transport_factory import FakeTransport  # noqa: E402

# ============================================================================
# Time Fixtures
# ============================================================================


class FakeClock:
    """Millisecond clock driven explicitly by the test."""

    def __init__(self, start_ms: float = 1_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeCalendar:
    """Controllable today() for the cost ledger."""

    def __init__(self, today: date = date(2025, 1, 15)):
        self.today = today

    def __call__(self) -> date:
        return self.today


class RecordingSleep:
    """Async sleep replacement that records requested delays without waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_calendar():
    return FakeCalendar()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def settings_factory():
    """
    Build Settings isolated from the environment and .env files.

    Defaults favour fast, deterministic tests: no jitter and tiny delays.
    """

    def make(**overrides) -> Settings:
        values = {
            "OPENAI_API_KEY": "sk-test-key",
            "JITTER": False,
            "BASE_DELAY_MS": 1,
            "MAX_DELAY_MS": 10,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return make


@pytest.fixture
def test_settings(settings_factory):
    return settings_factory()


# ============================================================================
# Infrastructure Fixtures
# ============================================================================


@pytest.fixture
def in_memory_store():
    return InMemoryStore()


@pytest.fixture
def mock_redis():
    """AsyncMock standing in for a redis.asyncio client."""
    client = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.mget = AsyncMock(return_value=[])
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def fake_transport():
    return FakeTransport()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def service_factory(settings_factory, fake_clock, fake_calendar, recording_sleep):
    """
    Build a ResilientAnalysisService wired with fake time.

    The breaker and the rate limiter read `fake_clock`; retries record their
    delays in `recording_sleep` instead of sleeping.
    """

    def make(transport=None, store=None, **overrides) -> ResilientAnalysisService:
        settings = settings_factory(**overrides)
        transport = transport if transport is not None else FakeTransport()
        cache = PersistentResponseCache(
            ResponseCache.from_settings(settings),
            store if store is not None else InMemoryStore(),
            decode=AnalysisResult.model_validate,
        )
        return ResilientAnalysisService(
            AnalysisClient.from_settings(settings, transport),
            settings,
            retry_strategy=RetryStrategy(RetryConfig.from_settings(settings), sleep=recording_sleep),
            circuit_breaker=CircuitBreaker.from_settings(settings, clock=fake_clock),
            rate_limiter=RateLimiter.from_settings(settings, clock=fake_clock),
            cost_controller=CostController.from_settings(settings, today=fake_calendar),
            cache=cache,
        )

    return make
