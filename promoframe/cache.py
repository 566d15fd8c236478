"""Thread-safe LRU memory of the last transform used per image.

Entries are keyed by a content fingerprint of the decoded pixels so that
uploading the same image again restores the transform it was last edited
with.  The memory lives only as long as its owning session; it is a
convenience and never required for correctness.
"""

from __future__ import annotations

from collections import OrderedDict
from threading import RLock
from typing import Optional

from . import config
from .transform import TransformRecord


class SettingsMemory:
    """A simple thread-safe LRU map of fingerprint to transform."""

    def __init__(self, max_size: int = config.SETTINGS_MEMORY_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be greater than zero")
        self.max_size = max_size
        self._entries: "OrderedDict[str, TransformRecord]" = OrderedDict()
        self._lock = RLock()

    def get(self, fingerprint: str) -> Optional[TransformRecord]:
        """Return the remembered transform, marking it most recently used."""
        with self._lock:
            try:
                value = self._entries.pop(fingerprint)
            except KeyError:
                return None
            self._entries[fingerprint] = value
            return value

    def put(self, fingerprint: str, transform: TransformRecord) -> None:
        """Remember ``transform``; the least recently used entry is evicted."""
        with self._lock:
            if self._entries.get(fingerprint) == transform:
                self._entries.move_to_end(fingerprint)
                return
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = transform
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)

    def forget(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    def clear(self) -> None:
        """Remove all remembered entries."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["SettingsMemory"]
