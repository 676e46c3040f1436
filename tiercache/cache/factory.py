"""
Assemble a CacheService from configuration.

The store backend and eviction policy are selected by name from
:class:`~tiercache.config.Settings`; the result is always a new,
independently owned service instance.
"""

import logging
from typing import Any, Optional

from tiercache.cache.eviction import create_policy
from tiercache.cache.redis_backend import RedisStore
from tiercache.cache.service import CacheService
from tiercache.cache.store import DiskStore, InMemoryStore, PersistentStore
from tiercache.config import Settings, StoreSettings, get_settings
from tiercache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_store(settings: StoreSettings) -> PersistentStore:
    """Instantiate the secondary-tier backend named in *settings*.

    Raises:
        ConfigurationError: If ``settings.backend`` is not one of
            ``memory``, ``disk`` or ``redis``.
    """
    backend = settings.backend.strip().lower()
    if backend == "memory":
        store: PersistentStore = InMemoryStore()
    elif backend == "disk":
        store = DiskStore(settings.disk_path)
    elif backend == "redis":
        store = RedisStore(
            redis_url=settings.redis_url,
            key_prefix=settings.key_prefix,
        )
        logger.info("Secondary tier using Redis", extra={"redis_url": "***"})
    else:
        raise ConfigurationError(
            f"Unknown store backend '{settings.backend}'. "
            "Available: disk, memory, redis"
        )
    return store


def build_cache_service(settings: Optional[Settings] = None) -> CacheService[Any]:
    """Build a CacheService wired according to *settings*.

    Args:
        settings: Full settings; defaults to :func:`get_settings`.

    Returns:
        A new CacheService with an empty fast tier.

    Raises:
        ConfigurationError: If the policy or backend name is unknown,
            or the capacity is below 1.
    """
    if settings is None:
        settings = get_settings()

    if settings.cache.capacity < 1:
        raise ConfigurationError(
            f"cache.capacity must be at least 1, got {settings.cache.capacity}"
        )

    policy = create_policy(settings.cache.eviction_policy)
    store = create_store(settings.store)
    return CacheService(
        capacity=settings.cache.capacity,
        store=store,
        policy=policy,
        refresh_on_hit=settings.cache.refresh_on_hit,
    )
