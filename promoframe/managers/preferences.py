"""Editor preferences persisted under their own storage key."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping

from .. import config
from ..errors import InvalidTransformError
from ..storage import KeyValueStorage
from ..transform import DEFAULT_TRANSFORM, TransformRecord

LOGGER = logging.getLogger(__name__)


@dataclass(eq=True, frozen=True)
class EditorPreferences:
    """User preferences that outlive a single editing session."""

    default_transform: TransformRecord = field(default=DEFAULT_TRANSFORM)
    auto_save_settings: bool = True
    dark_mode: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "defaultTransform": self.default_transform.to_payload(),
            "autoSaveSettings": self.auto_save_settings,
            "darkMode": self.dark_mode,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EditorPreferences":
        transform = payload.get("defaultTransform")
        return cls(
            default_transform=DEFAULT_TRANSFORM if transform is None else TransformRecord.from_payload(transform),
            auto_save_settings=bool(payload.get("autoSaveSettings", True)),
            dark_mode=bool(payload.get("darkMode", False)),
        )


DEFAULT_PREFERENCES = EditorPreferences()


class PreferencesManager:
    """Load, update and reset :class:`EditorPreferences`."""

    def __init__(self, storage: KeyValueStorage, *, key: str = config.PREFERENCES_KEY) -> None:
        self.storage = storage
        self.key = key
        self._preferences = self._load()

    @property
    def preferences(self) -> EditorPreferences:
        return self._preferences

    def _load(self) -> EditorPreferences:
        raw = self.storage.get(self.key)
        if not raw:
            return DEFAULT_PREFERENCES
        try:
            payload = json.loads(raw)
            if not isinstance(payload, Mapping):
                raise ValueError("preferences must be an object")
            return EditorPreferences.from_payload(payload)
        except (ValueError, InvalidTransformError) as exc:
            LOGGER.error("Failed to parse saved preferences: %s", exc)
            return DEFAULT_PREFERENCES

    def update(self, **changes: Any) -> EditorPreferences:
        """Merge ``changes`` and persist the result as a whole."""
        updated = replace(self._preferences, **changes)
        self.storage.set(self.key, json.dumps(updated.to_payload()))
        self._preferences = updated
        return updated

    def reset(self) -> EditorPreferences:
        """Forget stored preferences and fall back to the defaults."""
        self.storage.remove(self.key)
        self._preferences = DEFAULT_PREFERENCES
        return DEFAULT_PREFERENCES
