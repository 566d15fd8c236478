"""Saved-state serialization helpers decoupled from the store.

The interchange format is a JSON array of objects with the keys ``id``,
``name``, ``timestamp``, ``imageData``, ``transform`` and (optionally)
``thumbnail``.  Unknown keys are tolerated on import and dropped; required
keys are enforced strictly.
"""
from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..errors import ImportFormatError, InvalidTransformError
from ..transform import TransformRecord


LOGGER = logging.getLogger(__name__)


_REQUIRED_FIELDS = (
    ("id", str),
    ("name", str),
    ("timestamp", (int, float)),
    ("imageData", str),
)
_KNOWN_FIELDS = frozenset({"id", "name", "timestamp", "imageData", "transform", "thumbnail"})


@dataclass(eq=True, frozen=True)
class SavedState:
    """A named, frozen snapshot of an image and its transform."""

    id: str
    name: str
    timestamp: int
    image_data: str
    transform: TransformRecord
    thumbnail: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "timestamp": self.timestamp,
            "imageData": self.image_data,
            "transform": self.transform.to_payload(),
        }
        if self.thumbnail is not None:
            payload["thumbnail"] = self.thumbnail
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SavedState":
        """Build a state from an already validated payload."""
        return cls(
            id=payload["id"],
            name=payload["name"],
            timestamp=payload["timestamp"],
            image_data=payload["imageData"],
            transform=TransformRecord.from_payload(payload["transform"]),
            thumbnail=payload.get("thumbnail"),
        )


def validate_payload(payload: Any, index: int = 0) -> SavedState:
    """Check one import entry against the saved-state schema.

    Raises :class:`ImportFormatError` naming the entry and the field.
    """
    where = f"Entry {index}"
    if not isinstance(payload, Mapping):
        raise ImportFormatError(f"{where}: expected an object")
    for key, expected in _REQUIRED_FIELDS:
        if key not in payload:
            raise ImportFormatError(f"{where}: missing required field '{key}'")
        value = payload[key]
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ImportFormatError(f"{where}: field '{key}' has the wrong type")
    try:
        finite = math.isfinite(payload["timestamp"])
    except OverflowError as exc:
        raise ImportFormatError(f"{where}: field 'timestamp' is out of range") from exc
    if not finite:
        raise ImportFormatError(f"{where}: field 'timestamp' must be finite")
    thumbnail = payload.get("thumbnail")
    if thumbnail is not None and not isinstance(thumbnail, str):
        raise ImportFormatError(f"{where}: field 'thumbnail' has the wrong type")
    if "transform" not in payload:
        raise ImportFormatError(f"{where}: missing required field 'transform'")
    extra = set(payload) - _KNOWN_FIELDS
    if extra:
        LOGGER.debug("Ignoring unknown fields %s in import entry %d", sorted(extra), index)
    try:
        return SavedState.from_payload(payload)
    except InvalidTransformError as exc:
        raise ImportFormatError(f"{where}: invalid transform ({exc})") from exc


def serialize_states(states: Sequence[SavedState]) -> str:
    """Convert states into the compact JSON interchange document."""
    return json.dumps(
        [state.to_payload() for state in states],
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def deserialize_states(document: str | bytes) -> List[SavedState]:
    """Parse and validate an interchange document.

    Either every entry is valid and the full list is returned, or
    :class:`ImportFormatError` is raised and nothing is returned.
    """
    if isinstance(document, bytes):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ImportFormatError("Import file is not valid UTF-8") from exc
    try:
        parsed = json.loads(document)
    except json.JSONDecodeError as exc:
        raise ImportFormatError(f"Import file is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, list):
        raise ImportFormatError("Invalid saved states format: expected a list")
    states = [validate_payload(entry, index) for index, entry in enumerate(parsed)]
    seen = set()
    for index, state in enumerate(states):
        if state.id in seen:
            raise ImportFormatError(f"Entry {index}: duplicate id '{state.id}'")
        seen.add(state.id)
    return states


def serialized_size(states: Sequence[SavedState]) -> int:
    """Return the UTF-8 byte size of the serialized collection."""
    return len(serialize_states(states).encode("utf-8"))
