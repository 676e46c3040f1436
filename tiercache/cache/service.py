"""
Two-tier cache orchestration.

``CacheService`` owns a bounded fast tier and decides, on every read and
write, whether an entry is served from it, promoted from the secondary
store, or demoted to the store to make room.  Three pieces of state are
kept consistent under one lock: the fast-tier map, the secondary store,
and the eviction policy's tracked key set.
"""

import logging
import threading
from types import MappingProxyType
from typing import Dict, Generic, Mapping, Optional, Tuple, TypeVar

from pydantic import BaseModel

from tiercache.cache.eviction import EvictionPolicy
from tiercache.cache.store import PersistentStore
from tiercache.exceptions import EvictionError

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CacheStats(BaseModel):
    """Aggregate cache statistics.

    Attributes:
        hits: Lookups served directly from the fast tier.
        misses: Lookups that returned nothing, including promotions
            aborted by a storage failure.
        promotions: Entries moved from the secondary tier into the fast tier.
        demotions: Entries successfully written to the secondary tier.
        storage_errors: Secondary-tier writes that failed.
        dropped_entries: Values lost because of those failures.
        entry_count: Current number of entries in the fast tier.
        capacity: Maximum number of entries in the fast tier.
        hit_rate: ``hits / (hits + promotions + misses)``, 0.0 if no lookups.
    """

    hits: int = 0
    misses: int = 0
    promotions: int = 0
    demotions: int = 0
    storage_errors: int = 0
    dropped_entries: int = 0
    entry_count: int = 0
    capacity: int = 0
    hit_rate: float = 0.0


class CacheService(Generic[V]):
    """Bounded fast tier backed by an unbounded secondary store.

    Keys are strings; a ``None`` key is silently ignored by every
    operation.  Every public method runs end to end under a single
    ``threading.Lock``, including the calls into the store and policy,
    so a slow store blocks all other cache access.

    Storage failures never reach the caller.  Any exception raised by
    the store's ``put`` counts as one; stores are expected to raise
    StorageError, but other errors are caught and logged the same way.
    The two paths handle a failure differently:

    * ``put``: if the evicted entry cannot be written to the store it
      is dropped (logged and counted) and the new entry is still
      inserted.
    * ``get``: if the entry evicted to make room for a promotion cannot
      be written, the lookup returns ``None`` and neither the evicted
      nor the promoted value is kept.

    Both losses show up in :meth:`stats` as ``dropped_entries``.

    Args:
        capacity: Maximum number of fast-tier entries, at least 1.
        store: Secondary tier for displaced entries.
        policy: Eviction ordering for the fast tier.
        refresh_on_hit: If ``True`` a fast-tier hit is reported to the
            policy via ``track``.  Defaults to ``False``, in which case a
            hit leaves the eviction order untouched.

    Raises:
        ValueError: If ``capacity`` is less than 1.
    """

    def __init__(
        self,
        capacity: int,
        store: PersistentStore,
        policy: EvictionPolicy,
        refresh_on_hit: bool = False,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._store = store
        self._policy = policy
        self._refresh_on_hit = refresh_on_hit
        self._fast: Dict[str, V] = {}
        self._lock = threading.Lock()

        self._hits = 0
        self._misses = 0
        self._promotions = 0
        self._demotions = 0
        self._storage_errors = 0
        self._dropped = 0

        logger.info(
            "CacheService initialised",
            extra={
                "capacity": capacity,
                "store": type(store).__name__,
                "policy": type(policy).__name__,
                "refresh_on_hit": refresh_on_hit,
            },
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def put(self, key: Optional[str], value: V) -> None:
        """Insert *value* under *key* unless the key is already resident.

        A resident key keeps its original value (first write wins) but
        is still reported to the policy.  When the fast tier is full the
        policy's victim is demoted to the store first.  Any stale copy
        of *key* in the store is removed.

        Args:
            key: Cache key; ``None`` makes the call a no-op.
            value: Payload to cache.
        """
        if key is None:
            return

        with self._lock:
            logger.debug("Cache put", extra={"cache_key": key})
            if key in self._fast or len(self._fast) < self._capacity:
                self._policy.track(key)
                self._fast.setdefault(key, value)
                self._store.remove(key)
                return

            victim, victim_value = self._evict()
            try:
                self._store.put(victim, victim_value)
            except Exception as e:
                self._storage_errors += 1
                self._dropped += 1
                logger.error(
                    "Demotion failed, evicted entry dropped",
                    extra={
                        "cache_key": key,
                        "victim_key": victim,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
            else:
                self._demotions += 1
                logger.debug(
                    "Entry demoted",
                    extra={"cache_key": key, "victim_key": victim},
                )

            self._policy.track(key)
            self._store.remove(key)
            self._fast[key] = value

    def get(self, key: Optional[str]) -> Optional[V]:
        """Look up *key*, promoting it from the store on a fast-tier miss.

        A promotion into a full fast tier first demotes the policy's
        victim.  If that demotion fails the lookup returns ``None``.

        Args:
            key: Cache key; ``None`` returns ``None`` without side effects.

        Returns:
            The cached value, or ``None`` if the key is in neither tier
            or could not be promoted.
        """
        if key is None:
            return None

        with self._lock:
            if key in self._fast:
                self._hits += 1
                if self._refresh_on_hit:
                    self._policy.track(key)
                return self._fast[key]

            logger.debug("Fast tier miss, checking store", extra={"cache_key": key})
            entry = self._store.remove(key)
            if entry is None:
                self._misses += 1
                return None

            if len(self._fast) >= self._capacity:
                victim, victim_value = self._evict()
                try:
                    self._store.put(victim, victim_value)
                except Exception as e:
                    self._storage_errors += 1
                    self._dropped += 2
                    self._misses += 1
                    logger.error(
                        "Demotion failed, promotion aborted",
                        extra={
                            "cache_key": key,
                            "victim_key": victim,
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    return None
                self._demotions += 1
                logger.debug(
                    "Entry demoted",
                    extra={"cache_key": key, "victim_key": victim},
                )

            self._fast[key] = entry.value
            self._policy.track(key)
            self._promotions += 1
            logger.debug("Entry promoted", extra={"cache_key": key})
            return entry.value

    def snapshot(self) -> Mapping[str, V]:
        """Return a read-only copy of the fast tier.

        The copy is taken under the lock, so it never reflects a
        half-applied operation, and later mutations do not show through.
        """
        with self._lock:
            return MappingProxyType(dict(self._fast))

    def clear(self) -> None:
        """Empty the fast tier, the store, and the policy together."""
        with self._lock:
            count = len(self._fast)
            self._fast.clear()
            self._store.clear()
            self._policy.clear()
        logger.info("Cache cleared", extra={"entries_removed": count})

    def stats(self) -> CacheStats:
        """Return aggregate cache statistics."""
        with self._lock:
            lookups = self._hits + self._promotions + self._misses
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                promotions=self._promotions,
                demotions=self._demotions,
                storage_errors=self._storage_errors,
                dropped_entries=self._dropped,
                entry_count=len(self._fast),
                capacity=self._capacity,
                hit_rate=self._hits / lookups if lookups > 0 else 0.0,
            )

    @property
    def capacity(self) -> int:
        """Maximum number of fast-tier entries."""
        return self._capacity

    @property
    def size(self) -> int:
        """Current number of fast-tier entries."""
        with self._lock:
            return len(self._fast)

    @property
    def refresh_on_hit(self) -> bool:
        """Whether a fast-tier hit is reported to the eviction policy."""
        return self._refresh_on_hit

    def __contains__(self, key: object) -> bool:
        """Fast-tier membership; does not consult the store."""
        with self._lock:
            return key in self._fast

    def __len__(self) -> int:
        return self.size

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _evict(self) -> Tuple[str, V]:
        """Remove the policy's victim from the fast tier and return it."""
        victim = self._policy.select_victim()
        if victim not in self._fast:
            raise EvictionError(
                f"Policy selected key '{victim}' which is not in the fast tier"
            )
        return victim, self._fast.pop(victim)
