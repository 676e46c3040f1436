"""
Eviction-ordering policies for the fast tier.

A policy tracks which keys are resident in the fast tier and picks the
next key to demote when the tier is full.  The cache talks to it only
through the three-method :class:`EvictionPolicy` protocol, so FIFO, LRU
and LFU orderings are interchangeable at construction time.

Policies are not thread-safe on their own; the owning cache serialises
every call under its lock.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Protocol, runtime_checkable

from tiercache.exceptions import ConfigurationError, EvictionError

logger = logging.getLogger(__name__)


@runtime_checkable
class EvictionPolicy(Protocol):
    """Protocol for eviction trackers.

    Any policy must implement track, select_victim, and clear.
    """

    def track(self, key: str) -> None:
        """Record *key* as resident (and touched) under this policy's ordering."""
        ...

    def select_victim(self) -> str:
        """Return and stop tracking the next key to evict."""
        ...

    def clear(self) -> None:
        """Stop tracking all keys."""
        ...


class FIFOPolicy:
    """First-in first-out ordering.

    Re-tracking a resident key leaves its position unchanged, so the
    victim is always the key that has been resident longest.
    """

    def __init__(self) -> None:
        self._order: "OrderedDict[str, None]" = OrderedDict()

    def track(self, key: str) -> None:
        if key not in self._order:
            self._order[key] = None

    def select_victim(self) -> str:
        if not self._order:
            raise EvictionError("No keys tracked; cannot select a victim")
        key, _ = self._order.popitem(last=False)
        return key

    def clear(self) -> None:
        self._order.clear()

    def keys(self) -> List[str]:
        """Tracked keys in eviction order (next victim first)."""
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: object) -> bool:
        return key in self._order


class LRUPolicy:
    """Least-recently-used ordering.

    Every ``track`` call moves the key to the most-recent end.
    """

    def __init__(self) -> None:
        self._order: "OrderedDict[str, None]" = OrderedDict()

    def track(self, key: str) -> None:
        self._order[key] = None
        self._order.move_to_end(key)

    def select_victim(self) -> str:
        if not self._order:
            raise EvictionError("No keys tracked; cannot select a victim")
        key, _ = self._order.popitem(last=False)
        return key

    def clear(self) -> None:
        self._order.clear()

    def keys(self) -> List[str]:
        """Tracked keys in eviction order (next victim first)."""
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: object) -> bool:
        return key in self._order


class LFUPolicy:
    """Least-frequently-used ordering.

    Each ``track`` call counts as one use.  Among keys with the lowest
    count the one first tracked is evicted.  Victim selection is a
    linear scan, which is fine for the tier sizes this cache targets.
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}
        self._sequence: Dict[str, int] = {}
        self._next_seq = 0

    def track(self, key: str) -> None:
        if key in self._counts:
            self._counts[key] += 1
            return
        self._counts[key] = 1
        self._sequence[key] = self._next_seq
        self._next_seq += 1

    def select_victim(self) -> str:
        if not self._counts:
            raise EvictionError("No keys tracked; cannot select a victim")
        victim = min(self._counts, key=lambda k: (self._counts[k], self._sequence[k]))
        del self._counts[victim]
        del self._sequence[victim]
        return victim

    def clear(self) -> None:
        self._counts.clear()
        self._sequence.clear()
        self._next_seq = 0

    def keys(self) -> List[str]:
        """Tracked keys in eviction order (next victim first)."""
        return sorted(self._counts, key=lambda k: (self._counts[k], self._sequence[k]))

    def count(self, key: str) -> int:
        """Number of times *key* has been tracked, 0 if not resident."""
        return self._counts.get(key, 0)

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, key: object) -> bool:
        return key in self._counts


_POLICIES = {
    "fifo": FIFOPolicy,
    "lru": LRUPolicy,
    "lfu": LFUPolicy,
}


def create_policy(name: str) -> EvictionPolicy:
    """Instantiate an eviction policy by name.

    Args:
        name: One of ``fifo``, ``lru`` or ``lfu`` (case-insensitive).

    Returns:
        A fresh, empty policy.

    Raises:
        ConfigurationError: If the name is not recognised.
    """
    policy_cls = _POLICIES.get(name.strip().lower())
    if policy_cls is None:
        raise ConfigurationError(
            f"Unknown eviction policy '{name}'. "
            f"Available: {', '.join(sorted(_POLICIES))}"
        )
    logger.debug("Eviction policy created", extra={"policy": policy_cls.__name__})
    return policy_cls()
