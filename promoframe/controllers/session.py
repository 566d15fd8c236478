"""Editor session: the composition root of the editor.

This module introduces :class:`EditorSession`, a small service layer that
owns the currently loaded image and wires user intents to the three engine
components: transform mutations go through :class:`TransformHistory`,
rendering and export through :mod:`promoframe.compositor`, and snapshots
through :class:`SavedStateManager`.  The session has no UI dependencies so it
can be driven by a Qt front end, a CLI or tests alike.

Slow work (decoding, encoding, persisting) can run through a
:class:`~promoframe.tasks.TaskRunner`.  Two counters make overlapping
requests safe:

* every upload or restore request takes a new *request number*; when a
  decode finishes, it is only committed if no newer request was made;
* every committed upload, restore or reset starts a new *generation*; an
  export that finishes after the generation moved on is discarded.

Discarded results fail their future with
:class:`~promoframe.errors.StaleOperationError`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Optional, Union

from PIL import Image

from .. import compositor, config
from ..cache import SettingsMemory
from ..compositor import ExportArtifact, ExportFormat
from ..errors import NothingToRenderError, StaleOperationError
from ..managers.preferences import PreferencesManager
from ..managers.saved_states import SavedStateManager
from ..serialization import SavedState
from ..tasks import ImmediateTaskRunner, TaskRunner
from ..transform import (
    DEFAULT_TRANSFORM,
    OverlayType,
    TransformConstraints,
    TransformRecord,
    parse_overlay,
)
from ..utils.image_processor import (
    DecodedImage,
    decode_data_url,
    decode_image,
    fingerprint_image,
    read_image_file,
)
from .history import HistoryState, TransformHistory

LOGGER = logging.getLogger(__name__)


class SettingsMemoryPolicy(Enum):
    """Which images the per-image settings memory tracks."""

    UPLOADS_ONLY = "uploads-only"
    INCLUDE_RESTORES = "include-restores"


@dataclass(frozen=True)
class LoadedImage:
    """The image currently being edited."""

    image: Image.Image
    fingerprint: Optional[str]
    source: str
    state_id: Optional[str] = None
    restored_settings: bool = False


def _safe_fingerprint(image: Image.Image) -> Optional[str]:
    try:
        return fingerprint_image(image)
    except Exception as exc:  # noqa: BLE001 - the memory is optional
        LOGGER.warning("Image fingerprint failed, settings will not be remembered: %s", exc)
        return None


class EditorSession:
    """Manage one editing session independently of UI widgets."""

    def __init__(
        self,
        store: SavedStateManager,
        *,
        preferences: Optional[PreferencesManager] = None,
        runner: Optional[TaskRunner] = None,
        constraints: Optional[TransformConstraints] = None,
        canvas_size: int = config.CANVAS_SIZE,
        settings_memory: Optional[SettingsMemory] = None,
        memory_policy: SettingsMemoryPolicy = SettingsMemoryPolicy.UPLOADS_ONLY,
        history_limit: Optional[int] = None,
    ) -> None:
        if canvas_size <= 0:
            raise ValueError("canvas_size must be greater than zero")
        self.store = store
        self.preferences = preferences
        self.runner = runner or ImmediateTaskRunner()
        self.canvas_size = canvas_size
        self.settings_memory = settings_memory if settings_memory is not None else SettingsMemory()
        self.memory_policy = memory_policy
        self._history = TransformHistory(
            self._default_transform(),
            constraints=constraints,
            history_limit=history_limit,
        )
        self._lock = RLock()
        self._image: Optional[LoadedImage] = None
        self._request = 0
        self._generation = 0
        self.last_export: Optional[ExportArtifact] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def image(self) -> Optional[Image.Image]:
        loaded = self._image
        return None if loaded is None else loaded.image

    @property
    def loaded_image(self) -> Optional[LoadedImage]:
        return self._image

    @property
    def has_image(self) -> bool:
        return self._image is not None

    @property
    def transform(self) -> TransformRecord:
        return self._history.present

    @property
    def history(self) -> HistoryState:
        return self._history.state

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def constraints(self) -> TransformConstraints:
        return self._history.constraints

    @property
    def generation(self) -> int:
        return self._generation

    def _default_transform(self) -> TransformRecord:
        if self.preferences is None:
            return DEFAULT_TRANSFORM
        return self.preferences.preferences.default_transform

    def _auto_save_settings(self) -> bool:
        return self.preferences is None or self.preferences.preferences.auto_save_settings

    # ------------------------------------------------------------------
    # Image loading
    # ------------------------------------------------------------------
    def load_image(self, data: bytes, mime_type: Optional[str] = None) -> LoadedImage:
        """Decode ``data`` and make it the current image."""
        with self._lock:
            self._request += 1
            request = self._request
        decoded = decode_image(data, mime_type)
        return self._commit_upload(request, decoded)

    def load_image_file(self, path: Union[str, Path]) -> LoadedImage:
        """Read, validate and load an image file from disk."""
        return self.load_image(read_image_file(path))

    def upload_image(self, data: bytes, mime_type: Optional[str] = None) -> Future:
        """Decode ``data`` through the runner; the latest upload wins."""
        with self._lock:
            self._request += 1
            request = self._request
        inner = self.runner.submit(decode_image, data, mime_type)
        return self._chain(inner, lambda decoded: self._commit_upload(request, decoded))

    def _commit_upload(self, request: int, decoded: DecodedImage) -> LoadedImage:
        fingerprint = _safe_fingerprint(decoded.image)
        with self._lock:
            if request != self._request:
                LOGGER.debug("Discarding superseded upload", extra={"request": request})
                raise StaleOperationError("A newer image replaced this upload")
            remembered = self.settings_memory.get(fingerprint) if fingerprint else None
            self._history.reset(remembered or self._default_transform())
            loaded = LoadedImage(
                image=decoded.image,
                fingerprint=fingerprint,
                source="upload",
                restored_settings=remembered is not None,
            )
            self._image = loaded
            self._generation += 1
        if remembered is not None:
            LOGGER.info("Previous image settings have been restored")
        LOGGER.info("Image loaded", extra={"size": decoded.size, "mime_type": decoded.mime_type})
        return loaded

    # ------------------------------------------------------------------
    # Transform intents
    # ------------------------------------------------------------------
    def update_transform(self, **changes: Any) -> TransformRecord:
        """Commit one history entry with ``changes`` applied."""
        with self._lock:
            updated = self._history.update_transform(changes)
            self._remember()
            return updated

    def undo(self) -> TransformRecord:
        with self._lock:
            present = self._history.undo()
            self._remember()
            return present

    def redo(self) -> TransformRecord:
        with self._lock:
            present = self._history.redo()
            self._remember()
            return present

    def reset(self) -> TransformRecord:
        """Return to the default transform and start a fresh history."""
        with self._lock:
            present = self._history.reset(self._default_transform())
            self._generation += 1
            self._remember()
        LOGGER.info("Image position and scale have been reset")
        return present

    def nudge(self, dx: int = 0, dy: int = 0, *, large: bool = False) -> TransformRecord:
        """Move the image by ``dx``/``dy`` keyboard steps."""
        step = config.NUDGE_STEP_LARGE if large else config.NUDGE_STEP
        current = self.transform
        return self.update_transform(
            offset_x=current.offset_x + dx * step,
            offset_y=current.offset_y + dy * step,
        )

    def zoom_by(self, direction: int, *, large: bool = False) -> TransformRecord:
        """Change the scale by ``direction`` keyboard steps."""
        step = config.SCALE_STEP_LARGE if large else config.SCALE_STEP
        return self.update_transform(scale=self.transform.scale + direction * step)

    def zoom_wheel(self, delta_y: float) -> TransformRecord:
        """Zoom multiplicatively, in for negative ``delta_y``."""
        factor = 1 + config.WHEEL_ZOOM_FACTOR if delta_y < 0 else 1 - config.WHEEL_ZOOM_FACTOR
        scale = min(max(self.transform.scale * factor, config.MIN_SCALE), config.WHEEL_MAX_SCALE)
        return self.update_transform(scale=scale)

    def select_overlay(self, overlay: Union[OverlayType, str, None]) -> TransformRecord:
        """Select ``overlay``; selecting the active overlay again removes it."""
        chosen = parse_overlay(overlay)
        if chosen is not None and self.transform.overlay_type is chosen:
            chosen = None
        return self.update_transform(overlay_type=chosen)

    def _remember(self) -> None:
        loaded = self._image
        if loaded is None or loaded.fingerprint is None or not self._auto_save_settings():
            return
        if loaded.source == "restore" and self.memory_policy is not SettingsMemoryPolicy.INCLUDE_RESTORES:
            return
        self.settings_memory.put(loaded.fingerprint, self._history.present)

    # ------------------------------------------------------------------
    # Rendering and export
    # ------------------------------------------------------------------
    def _snapshot(self) -> tuple:
        with self._lock:
            if self._image is None:
                raise NothingToRenderError("No image loaded")
            return self._image.image, self._history.present, self._generation

    def render(self, surface: Optional[Image.Image] = None) -> Image.Image:
        """Render the current image onto ``surface`` or a fresh canvas."""
        image, transform, _ = self._snapshot()
        return compositor.render(image, transform, self.canvas_size, surface)

    def export(
        self,
        fmt: Union[str, ExportFormat] = ExportFormat.PNG,
        quality: Optional[float] = None,
        *,
        output_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ExportArtifact:
        """Render and encode the current composition."""
        image, transform, _ = self._snapshot()
        artifact = compositor.export(image, transform, output_size or self.canvas_size, fmt, quality, now=now)
        self.last_export = artifact
        return artifact

    def export_async(
        self,
        fmt: Union[str, ExportFormat] = ExportFormat.PNG,
        quality: Optional[float] = None,
        *,
        output_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Future:
        """Export through the runner; results from an older generation are dropped."""
        image, transform, generation = self._snapshot()
        inner = self.runner.submit(
            compositor.export,
            image,
            transform,
            output_size or self.canvas_size,
            fmt,
            quality,
            now=now,
        )

        def _finish(artifact: ExportArtifact) -> ExportArtifact:
            with self._lock:
                if generation != self._generation:
                    LOGGER.debug("Discarding stale export", extra={"generation": generation})
                    raise StaleOperationError("The image changed while exporting")
                self.last_export = artifact
            return artifact

        return self._chain(inner, _finish)

    # ------------------------------------------------------------------
    # Saved states
    # ------------------------------------------------------------------
    def save_current_state(self, name: str) -> SavedState:
        """Persist the current image and transform under ``name``."""
        image, transform, _ = self._snapshot()
        return self.store.save_state(name, image, transform)

    def save_current_state_async(self, name: str) -> Future:
        image, transform, _ = self._snapshot()
        return self.runner.submit(self.store.save_state, name, image, transform)

    def overwrite_saved_state(self, state_id: str, name: Optional[str] = None) -> SavedState:
        """Replace a saved state with the current image and transform."""
        image, transform, _ = self._snapshot()
        if name is None:
            name = self.store.get_state(state_id).name
        return self.store.overwrite_state(state_id, name, image, transform)

    def restore_state(self, state: Union[SavedState, str]) -> LoadedImage:
        """Load a saved state's image and start a fresh history from its transform."""
        saved = self.store.get_state(state) if isinstance(state, str) else state
        with self._lock:
            self._request += 1
            request = self._request
        image = decode_data_url(saved.image_data)
        return self._commit_restore(request, saved, image)

    def restore_state_async(self, state: Union[SavedState, str]) -> Future:
        saved = self.store.get_state(state) if isinstance(state, str) else state
        with self._lock:
            self._request += 1
            request = self._request
        inner = self.runner.submit(decode_data_url, saved.image_data)
        return self._chain(inner, lambda image: self._commit_restore(request, saved, image))

    def _commit_restore(self, request: int, saved: SavedState, image: Image.Image) -> LoadedImage:
        track = self.memory_policy is SettingsMemoryPolicy.INCLUDE_RESTORES
        fingerprint = _safe_fingerprint(image) if track else None
        with self._lock:
            if request != self._request:
                raise StaleOperationError("A newer image replaced this restore")
            # Restoring starts a new editing session: history is not carried over.
            self._history.reset(saved.transform)
            loaded = LoadedImage(
                image=image,
                fingerprint=fingerprint,
                source="restore",
                state_id=saved.id,
            )
            self._image = loaded
            self._generation += 1
            self._remember()
        LOGGER.info("Saved state restored", extra={"state_id": saved.id})
        return loaded

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _chain(inner: Future, finish: Callable[[Any], Any]) -> Future:
        """Return a future settled by ``finish(inner.result())``."""
        outer: Future = Future()
        outer.set_running_or_notify_cancel()

        def _done(completed: Future) -> None:
            try:
                value = finish(completed.result())
            except Exception as exc:  # noqa: BLE001 - delivered through the future
                outer.set_exception(exc)
            else:
                outer.set_result(value)

        inner.add_done_callback(_done)
        return outer

    def close(self) -> None:
        self.runner.shutdown()
