"""
Response Cache - In-Memory LRU + TTL

Architecture:
    ResponseCache (memory tier)
        ├── OrderedDict (insertion order doubles as recency order)
        ├── asyncio.Lock (atomic get/set/evict under concurrent callers)
        └── Cleanup task (periodic sweep of expired entries)

Eviction Policy:
    - TTL: an entry older than its ttl is a miss and is dropped lazily on access
    - LRU: when full, the single least recently used entry is evicted before insert

The background sweep only bounds memory; correctness never depends on it.
"""

import asyncio
import hashlib
from collections import OrderedDict
from typing import Any, Generic, TypeVar

import orjson

from jd_analyzer.core.clock import Clock, wall_clock_ms
from jd_analyzer.core.config.constants import CACHE_KEY_PREFIX, Stage
from jd_analyzer.core.logging.logger import get_logger, log_stage
from jd_analyzer.models.cache import CacheEntry

logger = get_logger(__name__)

T = TypeVar("T")


def _orjson_default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def content_hash(data: Any) -> str:
    """Stable digest of a cached value (key order independent)."""
    payload = orjson.dumps(data, default=_orjson_default, option=orjson.OPT_SORT_KEYS)
    return hashlib.md5(payload).hexdigest()


class ResponseCache(Generic[T]):
    """
    In-memory LRU cache with per-entry TTL.

    Usage:
        cache: ResponseCache[AnalysisResult] = ResponseCache(max_entries=100)
        key = ResponseCache.generate_key(content, "jd-analysis", ["react", "css"])
        if (result := await cache.get(key)) is None:
            result = await compute()
            await cache.set(key, result)

    None is not a cacheable value: get() uses it to signal a miss.
    """

    def __init__(
        self,
        max_entries: int = 100,
        default_ttl_ms: int = 3600000,
        cleanup_interval_ms: int = 300000,
        clock: Clock = wall_clock_ms,
    ):
        self._max_entries = max_entries
        self._default_ttl_ms = default_ttl_ms
        self._cleanup_interval_ms = cleanup_interval_ms
        self._clock = clock

        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task | None = None

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @classmethod
    def from_settings(cls, settings, clock: Clock = wall_clock_ms) -> "ResponseCache":
        cache = settings.cache
        return cls(
            max_entries=cache.CACHE_MAX_ENTRIES,
            default_ttl_ms=cache.CACHE_DEFAULT_TTL_MS,
            cleanup_interval_ms=cache.CACHE_CLEANUP_INTERVAL_MS,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # Key generation
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_key(content: str, analysis_type: Any, user_skills: list[str] | tuple[str, ...] | None = None) -> str:
        """
        Deterministic key for a logical request.

        Content is trimmed and lowercased and skills are sorted, so the same
        request collides on the same key regardless of skill order.

        MD5 is fine here: a collision only costs a cache miss.
        """
        normalized = content.strip().lower()
        type_value = getattr(analysis_type, "value", analysis_type)
        skills = ",".join(sorted(user_skills)) if user_skills else ""
        combined = f"{type_value}:{normalized}:{skills}"
        return f"{CACHE_KEY_PREFIX}:{hashlib.md5(combined.encode('utf-8')).hexdigest()}"

    # -------------------------------------------------------------------------
    # Core operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> T | None:
        async with self._lock:
            entry = self._lookup(key)
            if entry is None:
                self._misses += 1
                return None

            entry.access_count += 1
            entry.last_accessed_at = self._clock()
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.data

    async def set(self, key: str, data: T, ttl_ms: int | None = None) -> None:
        now = self._clock()
        entry = CacheEntry(
            data=data,
            created_at=now,
            ttl_ms=ttl_ms if ttl_ms is not None else self._default_ttl_ms,
            access_count=1,
            last_accessed_at=now,
            content_hash=content_hash(data),
        )
        await self.set_entry(key, entry)

    async def set_entry(self, key: str, entry: CacheEntry[T]) -> None:
        """Insert a prebuilt entry as most recently used (used to warm from a durable tier)."""
        async with self._lock:
            # delete-then-reinsert makes an overwrite the most recent entry
            self._entries.pop(key, None)

            if len(self._entries) >= self._max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                log_stage(logger, Stage.CACHE_WRITE, "Cache entry evicted", level="debug", cache_key=evicted_key[:24])

            self._entries[key] = entry

    async def get_entry(self, key: str) -> CacheEntry[T] | None:
        """Return the live entry without touching recency or stats."""
        async with self._lock:
            return self._lookup(key)

    async def has(self, key: str) -> bool:
        async with self._lock:
            return self._lookup(key) is not None

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    async def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            self._expirations += len(expired)

        if expired:
            logger.debug("Expired cache entries removed", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    def _lookup(self, key: str) -> CacheEntry[T] | None:
        # Caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._expirations += 1
            return None
        return entry

    # -------------------------------------------------------------------------
    # Background cleanup
    # -------------------------------------------------------------------------

    def start_cleanup(self) -> None:
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _cleanup_loop(self) -> None:
        interval = self._cleanup_interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            try:
                await self.cleanup()
            except Exception as e:
                logger.error("Cache cleanup sweep failed", error=str(e), error_type=type(e).__name__)

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def keys(self) -> list[str]:
        """Keys in LRU order (oldest first)."""
        return list(self._entries.keys())

    def get_popular_entries(self, limit: int = 10) -> list[tuple[str, CacheEntry[T]]]:
        ranked = sorted(self._entries.items(), key=lambda item: item[1].access_count, reverse=True)
        return ranked[:limit]

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        created = [entry.created_at for entry in self._entries.values()]
        return {
            "size": len(self._entries),
            "max_size": self._max_entries,
            "hit_rate": round(self._hits / total, 3) if total > 0 else 0.0,
            "total_requests": total,
            "total_hits": self._hits,
            "total_misses": self._misses,
            "evictions": self._evictions,
            "expirations": self._expirations,
            "oldest_entry": min(created) if created else None,
            "newest_entry": max(created) if created else None,
        }
