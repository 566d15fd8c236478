"""Persistence managers for saved states and preferences."""

from .preferences import DEFAULT_PREFERENCES, EditorPreferences, PreferencesManager
from .saved_states import (
    ExportDocument,
    SavedStateManager,
    StorageLimits,
    saved_state_metrics,
)

__all__ = [
    "DEFAULT_PREFERENCES",
    "EditorPreferences",
    "PreferencesManager",
    "ExportDocument",
    "SavedStateManager",
    "StorageLimits",
    "saved_state_metrics",
]
