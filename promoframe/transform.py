"""Transform record and the constraints that keep it in range.

A :class:`TransformRecord` describes how the loaded image is scaled, moved and
decorated.  Records are immutable; every change produces a new record so that
history entries and saved states can share them without copying.

:class:`TransformConstraints` owns the configured ranges.  All validation of
user-supplied values happens here, before a record reaches the history engine.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from . import config
from .errors import InvalidTransformError


class OverlayType(str, Enum):
    """Decorative bar patterns drawn over the composited image."""

    CINEMATIC = "cinematic"
    FULL_FRAME = "full-frame"


def parse_overlay(value: Any) -> Optional[OverlayType]:
    """Return the overlay for ``value`` (``None`` means no overlay)."""
    if value is None or isinstance(value, OverlayType):
        return value
    if isinstance(value, str):
        try:
            return OverlayType(value)
        except ValueError:
            pass
    raise InvalidTransformError(f"Unknown overlay type: {value!r}")


def _coerce_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTransformError(f"{name} must be a number, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError as exc:
        raise InvalidTransformError(f"{name} is out of range") from exc
    if not math.isfinite(number):
        raise InvalidTransformError(f"{name} must be finite")
    return number


@dataclass(eq=True, frozen=True)
class TransformRecord:
    """Scale, offset and overlay applied to the current image."""

    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    overlay_type: Optional[OverlayType] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "scale": self.scale,
            "offsetX": self.offset_x,
            "offsetY": self.offset_y,
            "overlayType": None if self.overlay_type is None else self.overlay_type.value,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TransformRecord":
        """Build a record from its JSON form, rejecting wrong types."""
        if not isinstance(payload, Mapping):
            raise InvalidTransformError("transform must be an object")
        missing = [key for key in ("scale", "offsetX", "offsetY") if key not in payload]
        if missing:
            raise InvalidTransformError(f"transform is missing {', '.join(missing)}")
        overlay = payload.get("overlayType")
        if overlay is not None and not isinstance(overlay, str):
            raise InvalidTransformError("overlayType must be null or a string")
        return cls(
            scale=_coerce_number("scale", payload["scale"]),
            offset_x=_coerce_number("offsetX", payload["offsetX"]),
            offset_y=_coerce_number("offsetY", payload["offsetY"]),
            overlay_type=parse_overlay(overlay),
        )


DEFAULT_TRANSFORM = TransformRecord()

_FIELD_NAMES = frozenset(f.name for f in fields(TransformRecord))


@dataclass(frozen=True)
class TransformConstraints:
    """Allowed ranges for transform fields."""

    min_scale: float = config.MIN_SCALE
    max_scale: float = config.MAX_SCALE
    min_offset: float = config.MIN_OFFSET
    max_offset: float = config.MAX_OFFSET

    def __post_init__(self) -> None:
        for name in ("min_scale", "max_scale", "min_offset", "max_offset"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
        if self.min_scale <= 0:
            raise ValueError("min_scale must be greater than zero")
        if self.min_scale > self.max_scale:
            raise ValueError("min_scale must not exceed max_scale")
        if self.min_offset > self.max_offset:
            raise ValueError("min_offset must not exceed max_offset")

    def clamp_scale(self, value: float) -> float:
        return min(max(value, self.min_scale), self.max_scale)

    def clamp_offset(self, value: float) -> float:
        return min(max(value, self.min_offset), self.max_offset)

    def clamp(self, record: TransformRecord) -> TransformRecord:
        """Return ``record`` with every numeric field inside the ranges."""
        return TransformRecord(
            scale=self.clamp_scale(_coerce_number("scale", record.scale)),
            offset_x=self.clamp_offset(_coerce_number("offset_x", record.offset_x)),
            offset_y=self.clamp_offset(_coerce_number("offset_y", record.offset_y)),
            overlay_type=parse_overlay(record.overlay_type),
        )

    def apply(self, record: TransformRecord, changes: Mapping[str, Any]) -> TransformRecord:
        """Merge ``changes`` into ``record`` and clamp the result.

        Raises :class:`InvalidTransformError` for unknown field names or
        values that are not finite numbers.
        """
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise InvalidTransformError(f"Unknown transform field(s): {', '.join(sorted(unknown))}")
        return self.clamp(replace(record, **changes))


DEFAULT_CONSTRAINTS = TransformConstraints()

__all__ = [
    "OverlayType",
    "TransformRecord",
    "TransformConstraints",
    "DEFAULT_TRANSFORM",
    "DEFAULT_CONSTRAINTS",
    "parse_overlay",
]
