"""
tiercache exception hierarchy.

All custom exceptions inherit from TierCacheException so callers can
catch a single base type when they want a broad safety net.
"""


class TierCacheException(Exception):
    """Base exception for all tiercache errors."""


class ConfigurationError(TierCacheException, ValueError):
    """Raised when configuration is invalid or cannot be loaded."""


class StorageError(TierCacheException):
    """Raised when the secondary tier cannot complete a write."""


class EvictionError(TierCacheException):
    """Raised when a victim is requested from an empty eviction tracker."""
