"""
Cache Data Models

CacheEntry is the in-memory entry owned by a ResponseCache; CacheRecord is
the persisted layout, one record per cache key, shared by every durable
store implementation.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """
    One cached value.

    Created on set, mutated (access_count, last_accessed_at) on get and
    destroyed on expiry, delete, clear or LRU eviction. Timestamps are
    wall-clock milliseconds so an entry can be persisted and reloaded.
    """

    data: T
    created_at: float
    ttl_ms: int
    access_count: int
    last_accessed_at: float
    content_hash: str

    def is_expired(self, now_ms: float) -> bool:
        return now_ms - self.created_at > self.ttl_ms

    def remaining_ttl_ms(self, now_ms: float) -> int:
        return max(0, int(self.ttl_ms - (now_ms - self.created_at)))


class CacheRecord(BaseModel):
    """Persisted cache record (one per key)."""

    key: str
    data: Any
    created_at: float
    ttl_ms: int = Field(gt=0)
    access_count: int = Field(default=1, ge=0)
    last_accessed_at: float
    content_hash: str

    def is_expired(self, now_ms: float) -> bool:
        return now_ms - self.created_at > self.ttl_ms
