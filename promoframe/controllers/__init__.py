"""Controller layer: transform history, gestures and the editor session."""

from .gestures import DragGesture, WheelZoom
from .history import HistoryState, TransformHistory
from .session import EditorSession, LoadedImage, SettingsMemoryPolicy

__all__ = [
    "DragGesture",
    "WheelZoom",
    "HistoryState",
    "TransformHistory",
    "EditorSession",
    "LoadedImage",
    "SettingsMemoryPolicy",
]
