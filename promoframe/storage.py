"""Key-value persistence backends.

Both backends store whole string values under a key and are always
read-modify-written as a whole by their owners.  A backend that cannot
accept a write raises :class:`~promoframe.errors.PersistenceError` and leaves
the previous value in place.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Union

from .errors import PersistenceError

LOGGER = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]+$")


def _byte_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStorage:
    """Interface implemented by persistence backends."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    """In-process storage with an optional byte quota.

    The quota mirrors a browser's storage limit: a write that would push the
    total size of all keys and values over ``quota_bytes`` is rejected.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
        self._lock = RLock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self.quota_bytes is not None:
                others = sum(_byte_size(k, v) for k, v in self._data.items() if k != key)
                if others + _byte_size(key, value) > self.quota_bytes:
                    raise PersistenceError("Storage quota exceeded")
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileStorage(KeyValueStorage):
    """Directory-backed storage with one ``<key>.json`` file per key.

    Writes go to a temporary file that atomically replaces the target, so a
    failed write never leaves a truncated value behind.
    """

    def __init__(self, directory: Union[str, Path], quota_bytes: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes
        self._lock = RLock()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Cannot create storage directory: {exc}") from exc

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        with self._lock:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as exc:
                raise PersistenceError(f"Cannot read {key}: {exc}") from exc

    def _used_bytes(self, exclude: str) -> int:
        total = 0
        for key in self.keys():
            if key == exclude:
                continue
            value = self.get(key) or ""
            total += _byte_size(key, value)
        return total

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        with self._lock:
            if self.quota_bytes is not None:
                if self._used_bytes(key) + _byte_size(key, value) > self.quota_bytes:
                    raise PersistenceError("Storage quota exceeded")
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except OSError as exc:
                try:
                    os.remove(tmp_name)
                except OSError as cleanup_exc:
                    LOGGER.warning(
                        "temp file cleanup failed",
                        extra={"file": tmp_name, "error": str(cleanup_exc)},
                    )
                raise PersistenceError(f"Cannot write {key}: {exc}") from exc

    def remove(self, key: str) -> None:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return
            except OSError as exc:
                raise PersistenceError(f"Cannot remove {key}: {exc}") from exc

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(p.stem for p in self.directory.glob("*.json") if not p.name.startswith("."))


__all__ = ["KeyValueStorage", "MemoryStorage", "JsonFileStorage"]
