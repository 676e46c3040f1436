"""Two-tier caching (fast tier / secondary store)."""

from tiercache.cache.eviction import (
    EvictionPolicy,
    FIFOPolicy,
    LFUPolicy,
    LRUPolicy,
    create_policy,
)
from tiercache.cache.factory import build_cache_service, create_store
from tiercache.cache.redis_backend import RedisStore
from tiercache.cache.service import CacheService, CacheStats
from tiercache.cache.store import DiskStore, InMemoryStore, PersistentStore, StoredEntry

__all__ = [
    "CacheService",
    "CacheStats",
    "DiskStore",
    "EvictionPolicy",
    "FIFOPolicy",
    "InMemoryStore",
    "LFUPolicy",
    "LRUPolicy",
    "PersistentStore",
    "RedisStore",
    "StoredEntry",
    "build_cache_service",
    "create_policy",
    "create_store",
]
