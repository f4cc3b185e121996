"""
Resilient Analysis Service
==========================

WHAT IS THIS SERVICE?
---------------------
ResilientAnalysisService is the single entry point callers use to analyze a
job description. Every call runs through the same pipeline:

    CacheCheck → RateCheck → CostCheck → Call → Record → CacheWrite → Done
                                           │
                         RetryStrategy( CircuitBreaker( AnalysisClient ) )

with an Error terminal reachable from every stage.

PIPELINE RULES:
---------------
1. **Cache hit short-circuits**: a cached result is returned immediately and
   consumes neither rate budget nor cost budget.
2. **Retry wraps the breaker**: each attempt passes through the circuit
   breaker, so every failed attempt counts toward tripping it and an open
   circuit's retry hint drives the next backoff delay.
3. **Degraded fallback**: when retries are exhausted on a retryable
   rate_limit, server or network failure, the caller gets a degraded result
   (empty keywords/skills, confidence 0) instead of an error. Quota, auth and
   validation errors always surface.
4. **Cache only confident results**: a result is cached only when
   `confidence > 0`, so a degraded answer never poisons the cache.
5. **Single-flight**: identical uncached requests in flight at the same time
   share one upstream call.

ARCHITECTURE:
-------------
Caller → ResilientAnalysisService → RetryStrategy → CircuitBreaker → AnalysisClient → Transport
                                  → RateLimiter
                                  → CostController
                                  → PersistentResponseCache → DurableStore

All collaborators are injected; there is no process-wide service instance.
"""

import asyncio
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from jd_analyzer.core.config.constants import (
    FALLBACK_SUGGESTION,
    HIGH_FAILURE_RATIO,
    RESPONSE_TIME_SAMPLES,
    CacheBackend,
    HealthStatus,
    Stage,
)
from jd_analyzer.core.config.settings import Settings, get_settings
from jd_analyzer.core.exceptions import AnalysisError, ErrorCategory, InvalidInputError, NetworkError, coerce_error
from jd_analyzer.core.interfaces import DurableStore
from jd_analyzer.core.logging.logger import (
    clear_request_id,
    get_logger,
    log_stage,
    set_request_id,
    setup_logging,
)
from jd_analyzer.core.resilience import (
    CircuitBreaker,
    CostController,
    RateLimiter,
    RetryConfig,
    RetryContext,
    RetryStrategy,
    estimate_tokens,
)
from jd_analyzer.infrastructure.cache import (
    InMemoryStore,
    PersistentResponseCache,
    RedisStore,
    ResponseCache,
)
from jd_analyzer.llm_providers.base_provider import AnalysisClient, Transport
from jd_analyzer.models.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    AnalysisResult,
    AnalysisType,
    Keyword,
    TokenUsage,
)

logger = get_logger(__name__)

# Failure categories a degraded result may stand in for
FALLBACK_CATEGORIES = frozenset({ErrorCategory.RATE_LIMIT, ErrorCategory.SERVER, ErrorCategory.NETWORK})


@dataclass
class RequestStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    cached: int = 0
    coalesced: int = 0
    degraded: int = 0
    response_times: deque = field(default_factory=lambda: deque(maxlen=RESPONSE_TIME_SAMPLES))


class ResilientAnalysisService:
    """
    Orchestrates cache, rate limit, cost budget, retry and circuit breaker
    around the analysis client.

    Usage:
        service = create_analysis_service(settings)
        await service.init()
        result = await service.analyze(text, "jd-analysis")
        await service.close()
    """

    def __init__(
        self,
        client: AnalysisClient,
        settings: Settings | None = None,
        *,
        retry_strategy: RetryStrategy | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        rate_limiter: RateLimiter | None = None,
        cost_controller: CostController | None = None,
        cache: PersistentResponseCache[AnalysisResult] | None = None,
        owns_transport: bool = False,
    ):
        self._settings = settings or get_settings()
        s = self._settings

        self.client = client
        self.retry_strategy = retry_strategy or RetryStrategy(RetryConfig.from_settings(s))
        self.circuit_breaker = circuit_breaker or CircuitBreaker.from_settings(s)
        self.rate_limiter = rate_limiter or RateLimiter.from_settings(s)
        self.cost_controller = cost_controller or CostController.from_settings(s)
        self.cache = cache or PersistentResponseCache(
            ResponseCache.from_settings(s),
            InMemoryStore(),
            decode=AnalysisResult.model_validate,
        )
        self._owns_transport = owns_transport

        self._stats = RequestStats()
        self._outcomes: deque[bool] = deque(maxlen=s.HEALTH_WINDOW_SIZE)
        self._inflight: dict[str, asyncio.Future] = {}
        self._init_lock = asyncio.Lock()
        self._initialized = False

    @property
    def settings(self) -> Settings:
        return self._settings

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        """Open the durable cache tier and start the cleanup sweep. Idempotent."""
        async with self._init_lock:
            if self._initialized:
                return
            if self._settings.ENABLE_CACHE:
                await self.cache.init()
                self.cache.start_cleanup()
            self._initialized = True
            log_stage(
                logger,
                Stage.INITIALIZATION,
                "Analysis service initialized",
                cache=self._settings.ENABLE_CACHE,
                retry=self._settings.ENABLE_RETRY,
                circuit_breaker=self._settings.ENABLE_CIRCUIT_BREAKER,
                rate_limit=self._settings.ENABLE_RATE_LIMIT,
                cost_control=self._settings.ENABLE_COST_CONTROL,
            )

    async def close(self) -> None:
        if self._initialized and self._settings.ENABLE_CACHE:
            await self.cache.close()
        if self._owns_transport:
            close = getattr(self.client.transport, "close", None)
            if close is not None:
                await close()
        self._initialized = False
        logger.info("Analysis service closed")

    async def __aenter__(self) -> "ResilientAnalysisService":
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def analyze(
        self,
        content: str,
        analysis_type: AnalysisType | str = AnalysisType.JD_ANALYSIS,
        user_skills: list[str] | None = None,
    ) -> AnalysisResult:
        """
        Analyze a job description.

        Returns:
            AnalysisResult, possibly degraded (confidence 0) when the API is down

        Raises:
            AnalysisError: validation, auth, quota and local rate-limit
                failures, and remote failures no fallback may stand in for
        """
        set_request_id(uuid.uuid4().hex[:12])
        start = time.perf_counter()
        self._stats.total += 1

        try:
            try:
                request = AnalysisRequest.build(content, analysis_type, user_skills)
            except InvalidInputError as e:
                log_stage(logger, Stage.REQUEST_VALIDATION, "Request rejected", level="warning", error_code=e.code)
                raise

            if not self._settings.ENABLE_CACHE:
                return await self._execute(request, None, start)

            if not self._initialized:
                await self.init()
            key = self.cache.generate_key(request.content, request.type, request.user_skills)

            cached, tier = await self.cache.get_with_tier(key)
            if cached is not None:
                self._stats.cached += 1
                log_stage(logger, Stage.DONE, "Served from cache", tier=tier.value, analysis_type=request.type.value)
                return cached

            if not self._settings.ENABLE_REQUEST_COALESCING:
                return await self._execute(request, key, start)

            pending = self._inflight.get(key)
            if pending is not None:
                self._stats.coalesced += 1
                log_stage(logger, Stage.CACHE_CHECK, "Joined in-flight request", cache_key=key[:24])
                return await asyncio.shield(pending)

            return await self._lead(request, key, start)

        except AnalysisError as e:
            self._stats.failed += 1
            log_stage(
                logger,
                Stage.DONE,
                "Analysis failed",
                level="warning",
                error_code=e.code,
                category=e.category.value,
                retryable=e.retryable,
                retry_after_ms=e.retry_after_ms,
            )
            raise
        except Exception as e:
            self._stats.failed += 1
            logger.error("Unexpected analysis failure", error=str(e), error_type=type(e).__name__, exc_info=True)
            raise AnalysisError.from_exception(e, code="SERVICE_ERROR") from e
        finally:
            clear_request_id()

    async def extract_keywords(self, content: str) -> list[Keyword]:
        result = await self.analyze(content, AnalysisType.KEYWORD_EXTRACTION)
        return list(result.keywords)

    async def match_skills(self, content: str, user_skills: list[str]) -> AnalysisResult:
        return await self.analyze(content, AnalysisType.SKILL_MATCHING, user_skills)

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    async def _lead(self, request: AnalysisRequest, key: str, start: float) -> AnalysisResult:
        """Run the upstream call for a key and share its outcome with followers."""
        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await self._execute(request, key, start)
        except asyncio.CancelledError:
            future.set_exception(
                NetworkError("Shared in-flight request was cancelled", code="REQUEST_CANCELLED")
            )
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # Followers may not exist; mark the exception as retrieved
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._inflight.pop(key, None)

    async def _execute(self, request: AnalysisRequest, key: str | None, start: float) -> AnalysisResult:
        s = self._settings
        try:
            if s.ENABLE_RATE_LIMIT:
                await self.rate_limiter.check_limit()

            if s.ENABLE_COST_CONTROL:
                self.cost_controller.check_cost(estimate_tokens(request.content, self.client.max_tokens))

            response = await self._call(request, start)
        except Exception:
            self._outcomes.append(True)
            raise

        result = response.result
        degraded = result.is_degraded
        self._outcomes.append(degraded)

        if s.ENABLE_COST_CONTROL and response.usage.total_tokens > 0:
            charged = self.cost_controller.record_usage(response.usage.total_tokens)
            log_stage(
                logger,
                Stage.USAGE_RECORD,
                "Token usage recorded",
                level="debug",
                total_tokens=response.usage.total_tokens,
                cost=charged,
            )

        if key is not None and result.confidence > 0:
            await self.cache.set(key, result)
            log_stage(logger, Stage.CACHE_WRITE, "Result cached", level="debug", cache_key=key[:24])

        self._stats.successful += 1
        if degraded:
            self._stats.degraded += 1
        self._stats.response_times.append(response.processing_time_ms)

        log_stage(
            logger,
            Stage.DONE,
            "Analysis completed",
            analysis_type=request.type.value,
            degraded=degraded,
            confidence=result.confidence,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        return result

    async def _call(self, request: AnalysisRequest, start: float) -> AnalysisResponse:
        async def attempt() -> AnalysisResponse:
            if self._settings.ENABLE_CIRCUIT_BREAKER:
                return await self.circuit_breaker.execute(lambda: self.client.analyze(request))
            return await self.client.analyze(request)

        async def fallback(error: AnalysisError, context: RetryContext) -> AnalysisResponse:
            return self._degraded_response(error, start, context.attempts)

        if self._settings.ENABLE_RETRY:
            return await self.retry_strategy.execute(attempt, fallback)

        try:
            return await attempt()
        except Exception as e:
            error = coerce_error(e)
            if not self._fallback_applies(error):
                raise
            return self._degraded_response(error, start, attempts=1)

    def _fallback_applies(self, error: AnalysisError) -> bool:
        return self._settings.ENABLE_FALLBACK and error.retryable and error.category in FALLBACK_CATEGORIES

    def _degraded_response(self, error: AnalysisError, start: float, attempts: int) -> AnalysisResponse:
        """Build the degraded answer, or raise `error` when no fallback may stand in for it."""
        if not self._fallback_applies(error):
            raise error

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        log_stage(
            logger,
            Stage.FALLBACK,
            "Analysis API unavailable, returning degraded result",
            level="warning",
            error_code=error.code,
            category=error.category.value,
            attempts=attempts,
        )
        return AnalysisResponse(
            result=AnalysisResult.degraded(FALLBACK_SUGGESTION, elapsed_ms),
            usage=TokenUsage(),
            processing_time_ms=elapsed_ms,
        )

    # -------------------------------------------------------------------------
    # Monitoring & administration
    # -------------------------------------------------------------------------

    def failure_ratio(self) -> float:
        if not self._outcomes:
            return 0.0
        return sum(self._outcomes) / len(self._outcomes)

    def get_stats(self) -> dict[str, Any]:
        times = self._stats.response_times
        cost = self.cost_controller.get_usage_stats()
        breaker = self.circuit_breaker.get_state()

        return {
            "requests": {
                "total": self._stats.total,
                "successful": self._stats.successful,
                "failed": self._stats.failed,
                "cached": self._stats.cached,
                "coalesced": self._stats.coalesced,
                "degraded": self._stats.degraded,
            },
            "performance": {
                "average_response_time_ms": round(sum(times) / len(times), 2) if times else 0.0,
                "fastest_response_ms": min(times) if times else 0,
                "slowest_response_ms": max(times) if times else 0,
            },
            "cache": self.cache.get_stats(),
            "costs": {
                "total_cost": cost["total_cost"],
                "daily_cost": cost["daily_cost"],
                "remaining_budget": cost["remaining_daily_budget"],
                "daily_limit": cost["daily_limit"],
            },
            "circuit_breaker": {
                "state": breaker["state"],
                "failures": breaker["failures"],
            },
            "rate_limit": {
                "remaining_requests": self.rate_limiter.get_remaining_requests(),
            },
            "client": self.client.get_usage_stats(),
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Derive service health.

        unhealthy: circuit open or daily budget exhausted
        degraded:  recent failure ratio above 0.5, rate budget exhausted or
                   provider reported unhealthy

        The provider is only consulted when its transport exposes
        health_check().
        """
        stats = self.get_stats()
        breaker_open = self._settings.ENABLE_CIRCUIT_BREAKER and self.circuit_breaker.is_open()
        budget_exhausted = self._settings.ENABLE_COST_CONTROL and stats["costs"]["remaining_budget"] <= 0
        ratio = self.failure_ratio()
        high_failure_rate = ratio > HIGH_FAILURE_RATIO
        rate_exhausted = self._settings.ENABLE_RATE_LIMIT and stats["rate_limit"]["remaining_requests"] == 0
        provider = await self._provider_health()
        provider_unhealthy = provider is not None and provider.get("status") != HealthStatus.HEALTHY.value

        if breaker_open or budget_exhausted:
            status = HealthStatus.UNHEALTHY
        elif high_failure_rate or rate_exhausted or provider_unhealthy:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.HEALTHY

        return {
            "status": status.value,
            "details": {
                "circuit_breaker_open": breaker_open,
                "high_failure_rate": high_failure_rate,
                "failure_ratio": round(ratio, 3),
                "rate_limit_exhausted": rate_exhausted,
                "budget_exhausted": budget_exhausted,
                "provider": provider,
                "stats": stats,
            },
        }

    async def _provider_health(self) -> dict[str, Any] | None:
        check = getattr(self.client.transport, "health_check", None)
        if check is None:
            return None
        try:
            return await check()
        except Exception as e:
            logger.warning("Provider health check failed", error=str(e), error_type=type(e).__name__)
            return {"status": HealthStatus.UNHEALTHY.value, "error": str(e)}

    def reset(self) -> None:
        """Reset statistics, breaker, limiter and cost ledger. The cache is kept."""
        self._stats = RequestStats()
        self._outcomes.clear()
        self.circuit_breaker.reset()
        self.rate_limiter.reset()
        self.cost_controller.reset()
        self.client.reset_usage_stats()
        logger.info("Analysis service state reset")

    async def clear_cache(self) -> None:
        await self.cache.clear()
        log_stage(logger, Stage.CACHE_WRITE, "Cache cleared")


def create_analysis_service(
    settings: Settings | None = None,
    transport: Transport | None = None,
    store: DurableStore | None = None,
) -> ResilientAnalysisService:
    """
    Build a fully wired service.

    Configures structured logging from the same settings. Without a
    transport, an OpenAI transport is built from settings (and closed with
    the service). Without a store, CACHE_BACKEND picks one.
    """
    settings = settings or get_settings()
    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    owns_transport = transport is None
    if transport is None:
        # Imported here so a custom transport never requires OpenAI settings
        from jd_analyzer.llm_providers.openai_provider import OpenAITransport

        transport = OpenAITransport.from_settings(settings)

    if store is None:
        if settings.CACHE_BACKEND == CacheBackend.REDIS:
            store = RedisStore(url=settings.REDIS_URL, namespace=settings.CACHE_NAMESPACE)
        else:
            store = InMemoryStore()

    cache = PersistentResponseCache(
        ResponseCache.from_settings(settings),
        store,
        decode=AnalysisResult.model_validate,
    )

    return ResilientAnalysisService(
        AnalysisClient.from_settings(settings, transport),
        settings,
        cache=cache,
        owns_transport=owns_transport,
    )
