"""Caller-side coalescing of continuous gestures.

The history engine records every update it receives.  Drags and wheel
scrolling produce many intermediate values, so these helpers decide when an
intermediate value is committed: at most one history entry per
``interval_ms`` while the gesture is active, plus one final entry when it
ends.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from .. import config

Commit = Callable[..., Any]


class _Throttle:
    """Tracks whether enough time has passed since the last commit."""

    def __init__(self, interval_ms: int, clock: Callable[[], float]) -> None:
        if interval_ms < 0:
            raise ValueError("interval_ms must not be negative")
        self.interval = interval_ms / 1000.0
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        now = self._clock()
        if self._last is None or now - self._last >= self.interval:
            self._last = now
            return True
        return False

    def reset(self) -> None:
        self._last = None


class DragGesture:
    """Turn pointer movement into throttled offset updates.

    ``commit`` receives keyword changes (``offset_x``/``offset_y``), usually
    :meth:`EditorSession.update_transform`.
    """

    def __init__(
        self,
        commit: Commit,
        *,
        interval_ms: int = config.DRAG_COMMIT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._commit = commit
        self._throttle = _Throttle(interval_ms, clock)
        self._active = False
        self._origin = (0.0, 0.0)
        self._start_offset = (0.0, 0.0)
        self._pending: Optional[Dict[str, float]] = None
        self._committed: Optional[Dict[str, float]] = None

    @property
    def active(self) -> bool:
        return self._active

    def begin(self, x: float, y: float, offset_x: float, offset_y: float) -> None:
        """Start dragging from pointer ``(x, y)`` with the current offsets."""
        self._active = True
        self._origin = (x, y)
        self._start_offset = (offset_x, offset_y)
        self._pending = None
        self._committed = None
        self._throttle.reset()
        # The first move after begin() commits immediately otherwise.
        self._throttle.ready()

    def move(self, x: float, y: float) -> bool:
        """Record pointer movement; returns True when an entry was committed."""
        if not self._active:
            return False
        self._pending = {
            "offset_x": self._start_offset[0] + (x - self._origin[0]),
            "offset_y": self._start_offset[1] + (y - self._origin[1]),
        }
        if self._throttle.ready():
            return self._flush()
        return False

    def end(self) -> bool:
        """Finish the drag, committing the final position if it changed."""
        if not self._active:
            return False
        self._active = False
        return self._flush()

    def cancel(self) -> None:
        self._active = False
        self._pending = None

    def _flush(self) -> bool:
        if self._pending is None or self._pending == self._committed:
            return False
        changes = self._pending
        self._committed = changes
        self._pending = None
        self._commit(**changes)
        return True


class WheelZoom:
    """Throttle multiplicative wheel zoom into scale updates.

    ``current_scale`` reads the committed scale so zooming always continues
    from what the history engine accepted (after clamping).
    """

    def __init__(
        self,
        commit: Commit,
        current_scale: Callable[[], float],
        *,
        factor: float = config.WHEEL_ZOOM_FACTOR,
        min_scale: float = config.MIN_SCALE,
        max_scale: float = config.WHEEL_MAX_SCALE,
        interval_ms: int = config.DRAG_COMMIT_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._commit = commit
        self._current_scale = current_scale
        self.factor = factor
        self.min_scale = min_scale
        self.max_scale = max_scale
        self._throttle = _Throttle(interval_ms, clock)
        self._scale: Optional[float] = None

    @property
    def pending_scale(self) -> Optional[float]:
        return self._scale

    def scroll(self, delta_y: float) -> bool:
        """Zoom in for negative ``delta_y`` and out otherwise."""
        base = self._current_scale() if self._scale is None else self._scale
        step = 1 + self.factor if delta_y < 0 else 1 - self.factor
        self._scale = min(max(base * step, self.min_scale), self.max_scale)
        if self._throttle.ready():
            return self.flush()
        return False

    def flush(self) -> bool:
        """Commit the pending scale, e.g. when the wheel goes idle."""
        if self._scale is None:
            return False
        scale = self._scale
        self._scale = None
        self._commit(scale=scale)
        return True
