"""Tests for editor preferences persistence."""
from __future__ import annotations

import json

from promoframe import config
from promoframe.managers import DEFAULT_PREFERENCES, PreferencesManager, SavedStateManager
from promoframe.storage import MemoryStorage
from promoframe.transform import DEFAULT_TRANSFORM, OverlayType, TransformRecord


def test_defaults_without_stored_value() -> None:
    manager = PreferencesManager(MemoryStorage())
    assert manager.preferences == DEFAULT_PREFERENCES
    assert manager.preferences.auto_save_settings is True


def test_update_persists_and_reloads() -> None:
    storage = MemoryStorage()
    manager = PreferencesManager(storage)
    default = TransformRecord(scale=1.2, overlay_type=OverlayType.CINEMATIC)

    manager.update(default_transform=default, dark_mode=True)

    stored = json.loads(storage.get(config.PREFERENCES_KEY))
    assert stored["darkMode"] is True
    assert stored["defaultTransform"]["overlayType"] == "cinematic"
    assert PreferencesManager(storage).preferences.default_transform == default


def test_corrupt_preferences_fall_back_to_defaults(caplog) -> None:
    storage = MemoryStorage()
    storage.set(config.PREFERENCES_KEY, '{"defaultTransform": {"scale": "big"}}')

    manager = PreferencesManager(storage)

    assert manager.preferences == DEFAULT_PREFERENCES
    assert "Failed to parse saved preferences" in caplog.text


def test_preferences_and_saved_states_clear_independently() -> None:
    storage = MemoryStorage()
    preferences = PreferencesManager(storage)
    preferences.update(auto_save_settings=False)
    states = SavedStateManager(storage)
    states.import_states("[]")

    preferences.reset()
    assert storage.get(config.SAVED_STATES_KEY) == "[]"
    assert preferences.preferences.default_transform == DEFAULT_TRANSFORM

    preferences.update(dark_mode=True)
    states.clear_all_states()
    assert PreferencesManager(storage).preferences.dark_mode is True
