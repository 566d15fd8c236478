"""Serialization helpers for promoframe."""

from .saved_state import (
    SavedState,
    deserialize_states,
    serialize_states,
    serialized_size,
    validate_payload,
)

__all__ = [
    "SavedState",
    "deserialize_states",
    "serialize_states",
    "serialized_size",
    "validate_payload",
]
