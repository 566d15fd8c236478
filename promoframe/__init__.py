"""Non-destructive image framing: transform history, compositing and saved states."""

from .compositor import ExportArtifact, ExportFormat
from .controllers import EditorSession, SettingsMemoryPolicy, TransformHistory
from .managers import PreferencesManager, SavedStateManager, StorageLimits
from .serialization import SavedState
from .storage import JsonFileStorage, MemoryStorage
from .transform import DEFAULT_TRANSFORM, OverlayType, TransformConstraints, TransformRecord

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TRANSFORM",
    "EditorSession",
    "ExportArtifact",
    "ExportFormat",
    "JsonFileStorage",
    "MemoryStorage",
    "OverlayType",
    "PreferencesManager",
    "SavedState",
    "SavedStateManager",
    "SettingsMemoryPolicy",
    "StorageLimits",
    "TransformConstraints",
    "TransformHistory",
    "TransformRecord",
]
