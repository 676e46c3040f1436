"""
Tests for the Redis-backed secondary tier.

Uses fakeredis so no real Redis server is required.
"""

from unittest.mock import MagicMock

import fakeredis
import pytest
import redis

from tiercache.cache.eviction import FIFOPolicy
from tiercache.cache.redis_backend import RedisStore
from tiercache.cache.service import CacheService
from tiercache.cache.store import PersistentStore
from tiercache.exceptions import StorageError


@pytest.fixture
def client():
    return fakeredis.FakeStrictRedis(decode_responses=True)


@pytest.fixture
def redis_store(client) -> RedisStore:
    """Create a RedisStore backed by fakeredis."""
    return RedisStore(
        redis_url="redis://localhost:6379/0",
        _redis_client=client,
    )


class TestRedisStoreWithFakeredis:
    """Tests for RedisStore using an injected FakeStrictRedis."""

    def test_satisfies_protocol(self, redis_store: RedisStore) -> None:
        assert isinstance(redis_store, PersistentStore)

    def test_put_and_remove(self, redis_store: RedisStore) -> None:
        redis_store.put("user:1", {"plan": "pro"})
        assert redis_store.contains("user:1")
        entry = redis_store.remove("user:1")
        assert entry is not None
        assert entry.key == "user:1"
        assert entry.value == {"plan": "pro"}
        assert not redis_store.contains("user:1")

    def test_keys_are_prefixed(self, redis_store: RedisStore, client) -> None:
        redis_store.put("k", 1)
        assert client.exists("tiercache:l2:k")

    def test_remove_missing(self, redis_store: RedisStore) -> None:
        assert redis_store.remove("nothing") is None

    def test_remove_corrupt_payload(self, redis_store: RedisStore, client) -> None:
        client.set("tiercache:l2:k", "{broken")
        assert redis_store.remove("k") is None
        assert not client.exists("tiercache:l2:k")

    def test_unserialisable_value_raises(self, redis_store: RedisStore) -> None:
        with pytest.raises(StorageError):
            redis_store.put("k", object())

    def test_tuple_value_raises(self, redis_store: RedisStore, client) -> None:
        with pytest.raises(StorageError, match="JSON round trip"):
            redis_store.put("k", (1, 2))
        assert not client.exists("tiercache:l2:k")

    def test_clear_only_touches_prefix(self, redis_store: RedisStore, client) -> None:
        client.set("other:key", "keep")
        redis_store.put("a", 1)
        redis_store.put("b", 2)
        assert redis_store.count() == 2
        redis_store.clear()
        assert redis_store.count() == 0
        assert client.get("other:key") == "keep"

    def test_custom_prefix(self, client) -> None:
        store = RedisStore("redis://unused", key_prefix="app:overflow:", _redis_client=client)
        store.put("k", 1)
        assert client.exists("app:overflow:k")

    def test_cache_round_trip(self, redis_store: RedisStore) -> None:
        cache = CacheService(capacity=2, store=redis_store, policy=FIFOPolicy())
        cache.put("a", "alpha")
        cache.put("b", "beta")
        cache.put("c", "gamma")
        assert redis_store.contains("a")
        assert cache.get("a") == "alpha"
        assert redis_store.contains("b")
        assert not redis_store.contains("a")


class TestRedisStoreErrors:
    """Client failures are translated or absorbed per the store contract."""

    @pytest.fixture
    def broken_client(self) -> MagicMock:
        m = MagicMock()
        m.set.side_effect = redis.ConnectionError("connection refused")
        m.pipeline.return_value.execute.side_effect = redis.ConnectionError(
            "connection refused"
        )
        m.scan_iter.side_effect = redis.ConnectionError("connection refused")
        return m

    def test_put_raises_storage_error(self, broken_client) -> None:
        store = RedisStore("redis://unused", _redis_client=broken_client)
        with pytest.raises(StorageError, match="Redis set failed"):
            store.put("k", 1)

    def test_remove_returns_none(self, broken_client) -> None:
        store = RedisStore("redis://unused", _redis_client=broken_client)
        assert store.remove("k") is None

    def test_clear_does_not_raise(self, broken_client) -> None:
        store = RedisStore("redis://unused", _redis_client=broken_client)
        store.clear()

    def test_cache_drops_victim_when_redis_down(self, broken_client) -> None:
        store = RedisStore("redis://unused", _redis_client=broken_client)
        cache = CacheService(capacity=1, store=store, policy=FIFOPolicy())
        cache.put("a", 1)
        cache.put("b", 2)
        assert dict(cache.snapshot()) == {"b": 2}
        assert cache.stats().storage_errors == 1
