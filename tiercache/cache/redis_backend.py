"""
Redis-backed secondary tier for tiercache.

Implements the same interface as the stores in store.py so the cache
can overflow to Redis instead of memory or disk.
Keys: {prefix}:{cache_key}, each holding the JSON of a StoredEntry.
"""

import logging
from typing import Any, Optional

import redis

from tiercache.cache.store import StoredEntry, deserialize_entry, serialize_entry
from tiercache.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisStore:
    """Redis-backed secondary tier.

    Same public interface as InMemoryStore and DiskStore: put, remove,
    clear.  ``remove`` runs GET and DEL inside one MULTI/EXEC pipeline
    so the destructive read is atomic even if other clients share the
    prefix.

    Args:
        redis_url: Redis connection URL (e.g. redis://localhost:6379/0).
        key_prefix: Prefix for all keys (default tiercache:l2).
    """

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "tiercache:l2",
        _redis_client: Optional[Any] = None,
    ) -> None:
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.from_url(redis_url, decode_responses=True)
        self._key_prefix = key_prefix.rstrip(":")

    def _key(self, cache_key: str) -> str:
        """Return full Redis key for a cache key."""
        return f"{self._key_prefix}:{cache_key}"

    def put(self, key: str, value: Any) -> None:
        """Store the pair in Redis.

        Raises:
            StorageError: If the value cannot be serialised or Redis
                rejects the write.
        """
        payload = serialize_entry(key, value)
        try:
            self._client.set(self._key(key), payload)
        except redis.RedisError as e:
            logger.error(
                "Redis set failed",
                extra={"cache_key": key, "error": str(e)},
            )
            raise StorageError(f"Redis set failed for key '{key}': {e}") from e
        logger.debug("Entry written to Redis", extra={"cache_key": key})

    def remove(self, key: str) -> Optional[StoredEntry]:
        """Atomically fetch and delete the entry for *key*.

        Returns:
            The StoredEntry, or None on a miss, on a Redis error, or if
            the stored payload cannot be parsed.
        """
        rkey = self._key(key)
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.get(rkey)
            pipe.delete(rkey)
            data, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning(
                "Redis remove failed",
                extra={"cache_key": key, "error": str(e)},
            )
            return None

        if data is None:
            return None

        try:
            return deserialize_entry(data)
        except ValueError as e:
            logger.warning(
                "Redis entry deserialize failed",
                extra={"cache_key": key, "error": str(e)},
            )
            return None

    def clear(self) -> None:
        """Delete every entry under our prefix."""
        try:
            keys = list(self._client.scan_iter(match=f"{self._key_prefix}:*"))
            if keys:
                self._client.delete(*keys)
            logger.info("RedisStore cleared", extra={"entries_removed": len(keys)})
        except redis.RedisError as e:
            logger.error("Redis clear failed", extra={"error": str(e)})

    def count(self) -> int:
        return sum(1 for _ in self._client.scan_iter(match=f"{self._key_prefix}:*"))

    def contains(self, key: str) -> bool:
        return bool(self._client.exists(self._key(key)))
