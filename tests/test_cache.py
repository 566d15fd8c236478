"""Tests for the per-image settings memory."""
from __future__ import annotations

import threading

import pytest

from promoframe.cache import SettingsMemory
from promoframe.transform import TransformRecord


def test_get_unknown_returns_none() -> None:
    assert SettingsMemory().get("missing") is None


def test_lru_eviction_order() -> None:
    """The least recently used fingerprint is evicted first."""

    memory = SettingsMemory(max_size=2)
    memory.put("a", TransformRecord(scale=1.1))
    memory.put("b", TransformRecord(scale=1.2))
    memory.get("a")
    memory.put("c", TransformRecord(scale=1.3))

    assert "b" not in memory
    assert memory.get("a") == TransformRecord(scale=1.1)
    assert memory.get("c") == TransformRecord(scale=1.3)


def test_put_replaces_and_forget_removes() -> None:
    memory = SettingsMemory()
    memory.put("a", TransformRecord(scale=1.1))
    memory.put("a", TransformRecord(scale=1.9))
    assert memory.get("a").scale == 1.9
    assert len(memory) == 1

    memory.forget("a")
    memory.forget("a")
    assert len(memory) == 0


def test_max_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SettingsMemory(max_size=0)


def test_thread_safety() -> None:
    """Concurrent puts stay bounded by ``max_size``."""

    memory = SettingsMemory(max_size=10)

    def worker(start: int) -> None:
        for i in range(start, start + 20):
            memory.put(str(i), TransformRecord(offset_x=float(i)))
            memory.get(str(i))

    threads = [threading.Thread(target=worker, args=(n * 20,)) for n in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(memory) == memory.max_size
