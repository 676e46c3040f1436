"""
Secondary-tier storage for entries displaced from the fast tier.

Provides a backend-agnostic Protocol plus an in-memory implementation
for development/testing and a file-system implementation that keeps one
JSON document per key.  The Redis implementation lives in
``tiercache.cache.redis_backend``.
"""

import hashlib
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from pydantic import BaseModel, ValidationError

from tiercache.exceptions import StorageError

logger = logging.getLogger(__name__)


class StoredEntry(BaseModel):
    """A key/value pair held in the secondary tier.

    Attributes:
        key: The cache key.
        value: The payload.  Serialising backends only accept values
            built from JSON-native types (dicts with string keys, lists,
            strings, numbers, booleans, None); the in-memory backend
            accepts anything.
    """

    key: str
    value: Any = None


def serialize_entry(key: str, value: Any) -> str:
    """Serialise a pair to JSON.

    The payload is parsed back and compared with *value*, so types that
    JSON would silently coerce (tuples, sets, bytes, dates, non-string
    dict keys) are rejected instead of coming back changed.

    Raises:
        StorageError: If the value is not serialisable or does not
            survive the round trip unchanged.
    """
    try:
        payload = StoredEntry(key=key, value=value).model_dump_json()
    except (ValueError, TypeError) as e:
        raise StorageError(f"Value for key '{key}' is not serialisable: {e}") from e

    try:
        unchanged = deserialize_entry(payload).value == value
    except (ValueError, TypeError):
        unchanged = False
    if not unchanged:
        raise StorageError(
            f"Value for key '{key}' of type {type(value).__name__} "
            "does not survive a JSON round trip"
        )
    return payload


def deserialize_entry(data: Union[str, bytes]) -> StoredEntry:
    """Parse JSON produced by :func:`serialize_entry`."""
    return StoredEntry.model_validate_json(data)


@runtime_checkable
class PersistentStore(Protocol):
    """Protocol for secondary-tier backends.

    ``put`` raises StorageError on I/O failure.  ``remove`` is a
    destructive read that never raises: a missing or unreadable entry
    is reported as ``None``.
    """

    def put(self, key: str, value: Any) -> None:
        """Durably store the pair, replacing any previous value."""
        ...

    def remove(self, key: str) -> Optional[StoredEntry]:
        """Atomically return and delete the entry for *key*, if present."""
        ...

    def clear(self) -> None:
        """Delete every entry."""
        ...


class InMemoryStore:
    """Dictionary-backed secondary tier.

    Values are held by reference, never serialised.  Suitable for tests
    and for processes that only need the overflow to outlive eviction,
    not the process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> Optional[StoredEntry]:
        with self._lock:
            if key not in self._data:
                return None
            value = self._data.pop(key)
        return StoredEntry(key=key, value=value)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._data)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._data


class DiskStore:
    """File-system secondary tier, one JSON file per key.

    File names are the MD5 hex digest of the key, so arbitrary key text
    is safe on any file system.  Writes go to a temporary file in the
    same directory and are moved into place with ``os.replace``, so a
    reader never sees a partially written entry.

    Args:
        directory: Directory that holds the entry files.  Created if
            missing.

    Raises:
        StorageError: If the directory cannot be created.
    """

    _SUFFIX = ".json"
    _TMP_SUFFIX = ".tmp"

    def __init__(self, directory: Union[str, Path]) -> None:
        self._dir = Path(directory)
        self._lock = threading.Lock()
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create store directory {self._dir}: {e}") from e
        logger.info("DiskStore initialised", extra={"directory": str(self._dir)})

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        digest = hashlib.md5(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}{self._SUFFIX}"

    def put(self, key: str, value: Any) -> None:
        """Write the pair to disk.

        Raises:
            StorageError: If the value is not JSON-serialisable, the
                file cannot be written, or the file name is already
                taken by a different key.
        """
        payload = serialize_entry(key, value)
        target = self._path(key)
        with self._lock:
            stored_key = self._stored_key(target)
            if stored_key is not None and stored_key != key:
                logger.warning(
                    "Disk entry key collision, write refused",
                    extra={"cache_key": key, "stored_key": stored_key},
                )
                raise StorageError(
                    f"Entry file for key '{key}' already holds key '{stored_key}'"
                )

            tmp_name = None
            try:
                with tempfile.NamedTemporaryFile(
                    "w",
                    encoding="utf-8",
                    dir=self._dir,
                    suffix=self._TMP_SUFFIX,
                    delete=False,
                ) as fh:
                    tmp_name = fh.name
                    fh.write(payload)
                os.replace(tmp_name, target)
            except OSError as e:
                if tmp_name is not None:
                    Path(tmp_name).unlink(missing_ok=True)
                raise StorageError(f"Cannot write entry for key '{key}': {e}") from e
        logger.debug("Entry written to disk", extra={"cache_key": key})

    def remove(self, key: str) -> Optional[StoredEntry]:
        path = self._path(key)
        with self._lock:
            try:
                data = path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as e:
                logger.warning(
                    "Disk entry read failed",
                    extra={"cache_key": key, "error": str(e)},
                )
                return None

            try:
                entry = deserialize_entry(data)
            except ValidationError as e:
                logger.warning(
                    "Corrupt disk entry discarded",
                    extra={"cache_key": key, "error": str(e)},
                )
                self._unlink(path)
                return None

            if entry.key != key:
                logger.warning(
                    "Disk entry key mismatch",
                    extra={"cache_key": key, "stored_key": entry.key},
                )
                return None

            self._unlink(path)
        return entry

    def clear(self) -> None:
        with self._lock:
            removed = 0
            for path in self._dir.iterdir():
                if path.suffix in (self._SUFFIX, self._TMP_SUFFIX):
                    self._unlink(path)
                    removed += 1
        logger.info("DiskStore cleared", extra={"entries_removed": removed})

    def count(self) -> int:
        with self._lock:
            return sum(1 for _ in self._dir.glob(f"*{self._SUFFIX}"))

    def contains(self, key: str) -> bool:
        return self._path(key).exists()

    @staticmethod
    def _stored_key(path: Path) -> Optional[str]:
        """Key recorded in an existing entry file, None if absent or unreadable."""
        try:
            return deserialize_entry(path.read_text(encoding="utf-8")).key
        except (OSError, ValidationError):
            return None

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(
                "Disk entry delete failed",
                extra={"path": str(path), "error": str(e)},
            )
