"""
Durable Store Protocol

Abstract async contract for the durable tier of the response cache. The
cache depends only on get/put/delete/clear/get_all; any persistence engine
(Redis, a local file, a browser-side key/value store behind a bridge) can
sit behind it.

Architectural Decision: Protocol-based abstraction
- Enables multiple store implementations without inheritance
- Facilitates testing with in-memory implementations
- Type-safe interface with runtime checking
"""

from typing import Protocol, runtime_checkable

from jd_analyzer.models.cache import CacheRecord


@runtime_checkable
class DurableStore(Protocol):
    """
    Protocol defining the durable key/value store used by the tiered cache.

    Every method either completes or raises StoreError; there are no
    callback-style continuations.

    Implementations:
    - InMemoryStore: process-local store for development and tests
    - RedisStore: Redis-backed store that survives restarts
    """

    async def init(self) -> None:
        """
        Prepare the store for use (open connections, create namespaces).

        Raises:
            StoreError: If the store cannot be opened
        """
        ...

    async def get(self, key: str) -> CacheRecord | None:
        """
        Get the record stored under key.

        Returns:
            The record, or None if absent
        """
        ...

    async def put(self, record: CacheRecord) -> None:
        """Insert or replace the record stored under record.key."""
        ...

    async def delete(self, key: str) -> bool:
        """
        Delete the record stored under key.

        Returns:
            bool: True if a record was deleted
        """
        ...

    async def clear(self) -> None:
        """Delete every record in the store's namespace."""
        ...

    async def get_all(self) -> list[CacheRecord]:
        """Return every record in the store's namespace."""
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...
