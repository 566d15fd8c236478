"""Undo/redo history over transform records.

:class:`TransformHistory` keeps full snapshots (records are small and
immutable) in three stacks: ``past`` (oldest first), ``present`` and
``future`` (next redo first).  It performs no I/O and no debouncing; callers
coalesce continuous gestures before committing an update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Any, List, Mapping, Optional, Tuple

from ..transform import (
    DEFAULT_CONSTRAINTS,
    DEFAULT_TRANSFORM,
    TransformConstraints,
    TransformRecord,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryState:
    """Immutable view of the history stacks."""

    past: Tuple[TransformRecord, ...]
    present: TransformRecord
    future: Tuple[TransformRecord, ...]

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)


class TransformHistory:
    """Manage transform history independently of any front end."""

    def __init__(
        self,
        initial: TransformRecord = DEFAULT_TRANSFORM,
        *,
        constraints: Optional[TransformConstraints] = None,
        history_limit: Optional[int] = None,
    ) -> None:
        if history_limit is not None and history_limit <= 0:
            raise ValueError("history_limit must be greater than zero")
        self._constraints = constraints or DEFAULT_CONSTRAINTS
        self._history_limit = history_limit
        self._lock = RLock()
        self._past: List[TransformRecord] = []
        self._future: List[TransformRecord] = []
        self._present = self._constraints.clamp(initial)

    @property
    def constraints(self) -> TransformConstraints:
        return self._constraints

    @property
    def present(self) -> TransformRecord:
        with self._lock:
            return self._present

    @property
    def can_undo(self) -> bool:
        with self._lock:
            return bool(self._past)

    @property
    def can_redo(self) -> bool:
        with self._lock:
            return bool(self._future)

    @property
    def state(self) -> HistoryState:
        """Return a consistent snapshot of all three stacks."""
        with self._lock:
            return HistoryState(tuple(self._past), self._present, tuple(self._future))

    def update_transform(
        self,
        partial: Optional[Mapping[str, Any]] = None,
        **changes: Any,
    ) -> TransformRecord:
        """Merge ``partial``/``changes`` into the present record.

        The previous record is pushed onto ``past`` and ``future`` is
        cleared.  Values are validated and clamped before anything changes.
        """
        merged = dict(partial or {})
        merged.update(changes)
        with self._lock:
            updated = self._constraints.apply(self._present, merged)
            self._past.append(self._present)
            if self._history_limit is not None and len(self._past) > self._history_limit:
                self._past.pop(0)
            self._future.clear()
            self._present = updated
            return updated

    def undo(self) -> TransformRecord:
        """Step back one entry; a no-op when there is nothing to undo."""
        with self._lock:
            if not self._past:
                return self._present
            self._future.insert(0, self._present)
            self._present = self._past.pop()
            return self._present

    def redo(self) -> TransformRecord:
        """Step forward one entry; a no-op when there is nothing to redo."""
        with self._lock:
            if not self._future:
                return self._present
            self._past.append(self._present)
            self._present = self._future.pop(0)
            return self._present

    def reset(self, new_transform: TransformRecord = DEFAULT_TRANSFORM) -> TransformRecord:
        """Replace the present record and drop all undo/redo history."""
        with self._lock:
            self._present = self._constraints.clamp(new_transform)
            self._past.clear()
            self._future.clear()
            LOGGER.debug("Transform history reset", extra={"transform": self._present.to_payload()})
            return self._present
