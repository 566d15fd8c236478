"""Tests for the key-value storage backends."""
from __future__ import annotations

import os

import pytest

from promoframe.errors import PersistenceError
from promoframe.storage import JsonFileStorage, MemoryStorage


@pytest.fixture(params=["memory", "file"])
def storage(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return JsonFileStorage(tmp_path / "store")


def test_set_get_remove(storage) -> None:
    assert storage.get("alpha") is None

    storage.set("alpha", '{"a": 1}')
    storage.set("beta", "[]")

    assert storage.get("alpha") == '{"a": 1}'
    assert storage.keys() == ["alpha", "beta"]

    storage.remove("alpha")
    storage.remove("alpha")
    assert storage.get("alpha") is None
    assert storage.keys() == ["beta"]


def test_memory_quota_rejects_write_and_keeps_value() -> None:
    storage = MemoryStorage(quota_bytes=20)
    storage.set("k", "small")

    with pytest.raises(PersistenceError, match="quota"):
        storage.set("k", "x" * 50)

    assert storage.get("k") == "small"


def test_memory_quota_counts_other_keys() -> None:
    storage = MemoryStorage(quota_bytes=20)
    storage.set("a", "x" * 10)
    with pytest.raises(PersistenceError):
        storage.set("b", "y" * 10)


def test_file_quota(tmp_path) -> None:
    storage = JsonFileStorage(tmp_path, quota_bytes=20)
    storage.set("k", "small")
    with pytest.raises(PersistenceError):
        storage.set("k", "x" * 50)
    assert storage.get("k") == "small"


def test_file_storage_rejects_unsafe_keys(tmp_path) -> None:
    storage = JsonFileStorage(tmp_path)
    with pytest.raises(ValueError):
        storage.set("../escape", "{}")


def test_failed_file_write_keeps_previous_value(tmp_path, monkeypatch) -> None:
    storage = JsonFileStorage(tmp_path)
    storage.set("k", "old")

    def fail_replace(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(PersistenceError, match="disk full"):
        storage.set("k", "new")

    monkeypatch.undo()
    assert storage.get("k") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["k.json"]
