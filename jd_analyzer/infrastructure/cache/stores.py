"""
Durable Store Implementations

Two implementations of the DurableStore protocol:

- InMemoryStore: process-local dict. Default backend and test double; it
  survives a cache clear of the memory tier but not a restart.
- RedisStore: one Redis string per record, JSON encoded with orjson, with a
  native PX expiry derived from the record's remaining TTL so Redis drops
  stale records on its own.

Every Redis failure is re-raised as StoreError; the tiered cache decides
what to do with it.
"""

from typing import Any

import orjson
import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from jd_analyzer.core.clock import Clock, wall_clock_ms
from jd_analyzer.core.config.constants import REDIS_KEY_PREFIX, Stage
from jd_analyzer.core.exceptions import StoreError
from jd_analyzer.core.logging.logger import get_logger, log_stage
from jd_analyzer.models.cache import CacheRecord

logger = get_logger(__name__)


class InMemoryStore:
    """Dict-backed DurableStore."""

    def __init__(self):
        self._records: dict[str, CacheRecord] = {}

    async def init(self) -> None:
        return None

    async def get(self, key: str) -> CacheRecord | None:
        return self._records.get(key)

    async def put(self, record: CacheRecord) -> None:
        self._records[record.key] = record

    async def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    async def clear(self) -> None:
        self._records.clear()

    async def get_all(self) -> list[CacheRecord]:
        return list(self._records.values())

    async def close(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._records)


class RedisStore:
    """
    Redis-backed DurableStore.

    Keys are laid out as `jdcache:<namespace>:<cache key>` so clear() and
    get_all() only ever touch this cache's records.

    Usage:
        store = RedisStore(url="redis://localhost:6379/0", namespace="jd-analysis-cache")
        await store.init()
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        namespace: str = "jd-analysis-cache",
        client: redis.Redis | None = None,
        clock: Clock = wall_clock_ms,
    ):
        self._url = url
        self._namespace = namespace
        self._client = client
        self._owns_client = client is None
        self._clock = clock

    @property
    def prefix(self) -> str:
        return f"{REDIS_KEY_PREFIX}:{self._namespace}:"

    def _redis_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise StoreError("Redis store used before init()", code="STORE_NOT_INITIALIZED")
        return self._client

    async def init(self) -> None:
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)
        try:
            await self._client.ping()
        except RedisError as e:
            log_stage(logger, Stage.DURABLE_STORE, "Failed to connect to Redis", level="error", error=str(e))
            raise StoreError.from_exception(e, f"Failed to connect to Redis: {e}", operation="init") from e

        log_stage(logger, Stage.DURABLE_STORE, "Redis store ready", namespace=self._namespace)

    async def get(self, key: str) -> CacheRecord | None:
        try:
            raw = await self.client.get(self._redis_key(key))
        except RedisError as e:
            raise StoreError.from_exception(e, f"Redis GET failed: {e}", operation="get", key=key) from e

        if raw is None:
            return None
        return self._decode(raw, key)

    async def put(self, record: CacheRecord) -> None:
        remaining_ms = int(record.ttl_ms - (self._clock() - record.created_at))
        if remaining_ms <= 0:
            # Already stale, nothing worth persisting
            await self.delete(record.key)
            return

        payload = orjson.dumps(record.model_dump(mode="json"))
        try:
            await self.client.set(self._redis_key(record.key), payload, px=remaining_ms)
        except RedisError as e:
            raise StoreError.from_exception(e, f"Redis SET failed: {e}", operation="put", key=record.key) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.client.delete(self._redis_key(key)))
        except RedisError as e:
            raise StoreError.from_exception(e, f"Redis DEL failed: {e}", operation="delete", key=key) from e

    async def clear(self) -> None:
        try:
            keys = [k async for k in self.client.scan_iter(match=f"{self.prefix}*")]
            if keys:
                await self.client.delete(*keys)
        except RedisError as e:
            raise StoreError.from_exception(e, f"Redis clear failed: {e}", operation="clear") from e

    async def get_all(self) -> list[CacheRecord]:
        try:
            keys = [k async for k in self.client.scan_iter(match=f"{self.prefix}*")]
            values = await self.client.mget(keys) if keys else []
        except RedisError as e:
            raise StoreError.from_exception(e, f"Redis scan failed: {e}", operation="get_all") from e

        records = []
        for key, raw in zip(keys, values):
            # Expired between SCAN and MGET
            if raw is None:
                continue
            records.append(self._decode(raw, key))
        return records

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            log_stage(logger, Stage.DURABLE_STORE, "Redis store closed")

    def _decode(self, raw: Any, key: str) -> CacheRecord:
        try:
            return CacheRecord.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, PydanticValidationError) as e:
            raise StoreError.from_exception(
                e, "Corrupt cache record", code="CORRUPT_RECORD", retryable=False, key=key
            ) from e
