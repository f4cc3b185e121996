"""
Persistent Response Cache - Memory Tier over a Durable Store

Architecture:
    PersistentResponseCache (public API)
        ├── ResponseCache (memory tier, LRU + TTL)
        └── DurableStore (durable tier: InMemoryStore, RedisStore, ...)

Algorithm:
    GET: memory → durable → miss (warm memory on a valid durable hit)
    SET: memory + durable (write-through)
    DELETE / CLEAR: both tiers

Architectural Decision: durability is best-effort
- A durable-tier failure is logged and the operation continues on the
  memory tier, so caching keeps working for the rest of the session
- Durable records are never read in preference to memory; memory always
  shadows the durable tier
- A store that fails to open is marked unavailable and skipped for the
  rest of the session; the memory tier keeps serving
- init() opens the store but hydrates nothing; records load lazily on the
  first get() for their key
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from jd_analyzer.core.clock import Clock, wall_clock_ms
from jd_analyzer.core.config.constants import CacheTier, Stage
from jd_analyzer.core.interfaces import DurableStore
from jd_analyzer.core.logging.logger import get_logger, log_stage
from jd_analyzer.infrastructure.cache.response_cache import ResponseCache
from jd_analyzer.models.cache import CacheEntry, CacheRecord

logger = get_logger(__name__)

T = TypeVar("T")


def _default_encode(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


def _default_decode(value: Any) -> Any:
    return value


class PersistentResponseCache(Generic[T]):
    """
    Two-tier response cache.

    Usage:
        cache = PersistentResponseCache(
            ResponseCache(max_entries=100),
            RedisStore(url=settings.REDIS_URL),
            decode=AnalysisResult.model_validate,
        )
        await cache.init()
    """

    def __init__(
        self,
        memory: ResponseCache[T],
        store: DurableStore,
        encode: Callable[[T], Any] = _default_encode,
        decode: Callable[[Any], T] = _default_decode,
        clock: Clock = wall_clock_ms,
    ):
        self._memory = memory
        self._store = store
        self._encode = encode
        self._decode = decode
        self._clock = clock
        self._initialized = False
        self._store_available = True

        self._memory_hits = 0
        self._durable_hits = 0
        self._misses = 0
        self._store_errors = 0

    @property
    def memory(self) -> ResponseCache[T]:
        return self._memory

    @property
    def store(self) -> DurableStore:
        return self._store

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def store_available(self) -> bool:
        return self._store_available

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def init(self) -> None:
        if self._initialized:
            return
        try:
            await self._store.init()
            self._store_available = True
        except Exception as e:
            self._store_available = False
            self._on_store_error("init", e)
        self._initialized = True
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Persistent cache initialized",
            store=type(self._store).__name__,
            store_available=self._store_available,
        )

    async def close(self) -> None:
        await self._memory.stop_cleanup()
        await self._store.close()
        self._initialized = False

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    def generate_key(self, content: str, analysis_type: Any, user_skills=None) -> str:
        return ResponseCache.generate_key(content, analysis_type, user_skills)

    async def get(self, key: str) -> T | None:
        value, _ = await self.get_with_tier(key)
        return value

    async def get_with_tier(self, key: str) -> tuple[T | None, CacheTier]:
        value = await self._memory.get(key)
        if value is not None:
            self._memory_hits += 1
            log_stage(logger, Stage.CACHE_CHECK, "Memory cache hit", level="debug", cache_key=key[:24])
            return value, CacheTier.MEMORY

        value = await self._load_from_store(key)
        if value is not None:
            self._durable_hits += 1
            log_stage(logger, Stage.CACHE_CHECK, "Durable cache hit", level="debug", cache_key=key[:24])
            return value, CacheTier.DURABLE

        self._misses += 1
        log_stage(logger, Stage.CACHE_CHECK, "Cache miss", level="debug", cache_key=key[:24])
        return None, CacheTier.MISS

    async def _load_from_store(self, key: str) -> T | None:
        if not self._store_available:
            return None
        try:
            record = await self._store.get(key)
        except Exception as e:
            self._on_store_error("get", e, key)
            return None

        if record is None:
            return None

        now = self._clock()
        if record.is_expired(now):
            await self._delete_from_store(key)
            return None

        try:
            data = self._decode(record.data)
        except Exception as e:
            self._on_store_error("decode", e, key)
            await self._delete_from_store(key)
            return None

        # Keep the original created_at so the memory copy expires with the record
        entry = CacheEntry(
            data=data,
            created_at=record.created_at,
            ttl_ms=record.ttl_ms,
            access_count=record.access_count + 1,
            last_accessed_at=now,
            content_hash=record.content_hash,
        )
        await self._memory.set_entry(key, entry)
        return data

    async def set(self, key: str, data: T, ttl_ms: int | None = None) -> None:
        await self._memory.set(key, data, ttl_ms)

        entry = await self._memory.get_entry(key)
        if entry is None or not self._store_available:
            return

        try:
            record = CacheRecord(
                key=key,
                data=self._encode(entry.data),
                created_at=entry.created_at,
                ttl_ms=entry.ttl_ms,
                access_count=entry.access_count,
                last_accessed_at=entry.last_accessed_at,
                content_hash=entry.content_hash,
            )
            await self._store.put(record)
        except Exception as e:
            self._on_store_error("put", e, key)

    async def has(self, key: str) -> bool:
        if await self._memory.has(key):
            return True
        if not self._store_available:
            return False
        try:
            record = await self._store.get(key)
        except Exception as e:
            self._on_store_error("get", e, key)
            return False
        return record is not None and not record.is_expired(self._clock())

    async def delete(self, key: str) -> bool:
        deleted = await self._memory.delete(key)
        return await self._delete_from_store(key) or deleted

    async def clear(self) -> None:
        await self._memory.clear()
        if self._store_available:
            try:
                await self._store.clear()
            except Exception as e:
                self._on_store_error("clear", e)

        self._memory_hits = 0
        self._durable_hits = 0
        self._misses = 0

    async def cleanup(self) -> int:
        """Drop expired entries from both tiers. Returns the number removed from memory."""
        removed = await self._memory.cleanup()
        if not self._store_available:
            return removed
        try:
            now = self._clock()
            for record in await self._store.get_all():
                if record.is_expired(now):
                    await self._store.delete(record.key)
        except Exception as e:
            self._on_store_error("cleanup", e)
        return removed

    def start_cleanup(self) -> None:
        self._memory.start_cleanup()

    async def _delete_from_store(self, key: str) -> bool:
        if not self._store_available:
            return False
        try:
            return await self._store.delete(key)
        except Exception as e:
            self._on_store_error("delete", e, key)
            return False

    def _on_store_error(self, operation: str, error: Exception, key: str | None = None) -> None:
        self._store_errors += 1
        log_stage(
            logger,
            Stage.DURABLE_STORE,
            "Durable store operation failed, continuing with memory tier",
            level="warning",
            operation=operation,
            cache_key=key[:24] if key else None,
            error=str(error),
            error_type=type(error).__name__,
        )

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def get_popular_entries(self, limit: int = 10) -> list[tuple[str, CacheEntry[T]]]:
        return self._memory.get_popular_entries(limit)

    def get_stats(self) -> dict[str, Any]:
        stats = self._memory.get_stats()
        total = self._memory_hits + self._durable_hits + self._misses
        stats.update(
            {
                "memory_hits": self._memory_hits,
                "durable_hits": self._durable_hits,
                "tiered_misses": self._misses,
                "tiered_hit_rate": round((self._memory_hits + self._durable_hits) / total, 3) if total else 0.0,
                "store_errors": self._store_errors,
                "store_available": self._store_available,
            }
        )
        return stats

    async def get_stats_async(self) -> dict[str, Any]:
        stats = self.get_stats()
        if not self._store_available:
            stats["persistent_size"] = None
            return stats
        try:
            stats["persistent_size"] = len(await self._store.get_all())
        except Exception as e:
            self._on_store_error("get_all", e)
            stats["persistent_size"] = None
        return stats
