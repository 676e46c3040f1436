"""Tests for building a CacheService from settings."""

import pytest

from tiercache.cache.eviction import LFUPolicy, LRUPolicy
from tiercache.cache.factory import build_cache_service, create_store
from tiercache.cache.redis_backend import RedisStore
from tiercache.cache.service import CacheService
from tiercache.cache.store import DiskStore, InMemoryStore
from tiercache.config import CacheSettings, Settings, StoreSettings
from tiercache.exceptions import ConfigurationError


class TestCreateStore:
    def test_memory(self) -> None:
        assert isinstance(create_store(StoreSettings(backend="memory")), InMemoryStore)

    def test_disk(self, tmp_path) -> None:
        store = create_store(StoreSettings(backend="disk", disk_path=str(tmp_path / "l2")))
        assert isinstance(store, DiskStore)
        assert store.directory == tmp_path / "l2"

    def test_redis(self) -> None:
        # redis.from_url connects lazily, so no server is needed here
        store = create_store(StoreSettings(backend="Redis", key_prefix="t:l2"))
        assert isinstance(store, RedisStore)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown store backend"):
            create_store(StoreSettings(backend="s3"))


class TestBuildCacheService:
    def test_builds_from_settings(self) -> None:
        settings = Settings(
            cache=CacheSettings(capacity=7, eviction_policy="lru", refresh_on_hit=True),
            store=StoreSettings(backend="memory"),
        )
        cache = build_cache_service(settings)
        assert isinstance(cache, CacheService)
        assert cache.capacity == 7
        assert cache.refresh_on_hit is True
        assert isinstance(cache._policy, LRUPolicy)

    def test_each_call_returns_new_instance(self) -> None:
        settings = Settings(cache=CacheSettings(capacity=2, eviction_policy="lfu"))
        first = build_cache_service(settings)
        second = build_cache_service(settings)
        assert first is not second
        assert isinstance(first._policy, LFUPolicy)
        first.put("a", 1)
        assert second.get("a") is None

    def test_invalid_capacity(self) -> None:
        settings = Settings(cache=CacheSettings(capacity=0))
        with pytest.raises(ConfigurationError, match="at least 1"):
            build_cache_service(settings)

    def test_unknown_policy(self) -> None:
        settings = Settings(cache=CacheSettings(eviction_policy="mru"))
        with pytest.raises(ConfigurationError):
            build_cache_service(settings)
