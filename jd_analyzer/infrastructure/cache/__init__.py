from .persistent_cache import PersistentResponseCache
from .response_cache import ResponseCache, content_hash
from .stores import InMemoryStore, RedisStore

__all__ = [
    "InMemoryStore",
    "PersistentResponseCache",
    "RedisStore",
    "ResponseCache",
    "content_hash",
]
