# managers/saved_states.py
"""Saved-state store with quota enforcement, structured logging and metrics.

This module exposes :class:`SavedStateManager`, which keeps named snapshots of
an image and its transform in a key-value backend.  Every mutation is
all-or-nothing: the candidate collection is built on the side, checked
against the configured caps, written as a whole, and only then becomes the
in-memory collection.  Failures surface as
:class:`~promoframe.errors.StorageLimitError`,
:class:`~promoframe.errors.PersistenceError` or
:class:`~promoframe.errors.ImportFormatError` with the collection untouched.

All operations emit structured logs including a correlation identifier
(``cid``).  Basic metrics are recorded via the ``saved_state_metrics``
instance, which tracks operation counts as well as observed durations.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import Counter
from dataclasses import dataclass
from threading import RLock
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple, Union

from PIL import Image

from .. import config
from ..errors import (
    ImportFormatError,
    InvalidStateNameError,
    PersistenceError,
    StorageLimitError,
    UnknownStateError,
)
from ..serialization import SavedState, deserialize_states, serialize_states
from ..storage import KeyValueStorage
from ..transform import TransformRecord
from ..utils.image_operations import compress_image, make_thumbnail
from ..utils.image_processor import decode_data_url, decode_image, encode_data_url

LOGGER = logging.getLogger(__name__)

ImageSource = Union[Image.Image, str, bytes]


class _SavedStateMetrics:
    """Simple in-memory metrics collector."""

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.durations: list[float] = []

    def record(self, name: str, duration: float | None = None) -> None:
        self.counters[name] += 1
        if duration is not None:
            self.durations.append(duration)

    def reset(self) -> None:
        self.counters.clear()
        self.durations.clear()


saved_state_metrics = _SavedStateMetrics()


@dataclass(frozen=True)
class StorageLimits:
    """Caps applied to the saved-state collection."""

    max_states: int = config.MAX_SAVED_STATES
    max_storage_size: int = config.MAX_STORAGE_SIZE

    def __post_init__(self) -> None:
        if self.max_states <= 0:
            raise ValueError("max_states must be greater than zero")
        if self.max_storage_size <= 0:
            raise ValueError("max_storage_size must be greater than zero")


@dataclass(frozen=True)
class ExportDocument:
    """A downloadable export of all saved states."""

    filename: str
    content: str


def _new_id() -> str:
    return str(uuid.uuid4())


class _CidAdapter(logging.LoggerAdapter):
    """Adapter that keeps per-call ``extra`` fields next to the ``cid``."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def _operation_log() -> logging.LoggerAdapter:
    return _CidAdapter(LOGGER, {"cid": uuid.uuid4().hex})


class SavedStateManager:
    """Persist named snapshots of the editor."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        limits: Optional[StorageLimits] = None,
        key: str = config.SAVED_STATES_KEY,
        clock: Optional[Callable[[], float]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.storage = storage
        self.limits = limits or StorageLimits()
        self.key = key
        self._clock = clock or time.time
        self._id_factory = id_factory or _new_id
        self._states: Tuple[SavedState, ...] = ()
        self._usage = 0
        self._lock = RLock()
        self._load()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def states(self) -> Tuple[SavedState, ...]:
        """Saved states, most recent first."""
        return self._states

    @property
    def storage_usage(self) -> int:
        """Serialized size of the collection in bytes."""
        return self._usage

    @property
    def max_storage_size(self) -> int:
        return self.limits.max_storage_size

    @property
    def max_states(self) -> int:
        return self.limits.max_states

    def get_state(self, state_id: str) -> SavedState:
        for state in self._states:
            if state.id == state_id:
                return state
        raise UnknownStateError(f"No saved state with id {state_id}")

    def __len__(self) -> int:
        return len(self._states)

    def _load(self) -> None:
        raw = self.storage.get(self.key)
        if not raw:
            return
        try:
            states = deserialize_states(raw)
        except ImportFormatError as exc:
            # The broken value stays on disk until the next successful write.
            LOGGER.error("Failed to parse saved states", extra={"error": str(exc)})
            return
        self._states = tuple(states)
        self._usage = len(raw.encode("utf-8"))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def save_state(self, name: str, image: ImageSource, transform: TransformRecord) -> SavedState:
        """Compress, thumbnail and prepend a new snapshot.

        Raises :class:`StorageLimitError` when the collection would exceed
        the byte cap and :class:`PersistenceError` when the backend rejects
        the write.  In both cases the collection is unchanged.
        """
        log = _operation_log()
        start = time.perf_counter()
        clean_name = self._validate_name(name)
        image_data, thumbnail = self._encode_snapshot(image)
        state = SavedState(
            id=self._id_factory(),
            name=clean_name,
            timestamp=int(self._clock() * 1000),
            image_data=image_data,
            transform=transform,
            thumbnail=thumbnail,
        )
        candidate = self._commit(
            lambda current: ((state,) + current)[: self.limits.max_states],
            log,
            limit_message="Storage limit reached. Please delete some saved states first.",
            metric="save",
        )
        saved_state_metrics.record("save", (time.perf_counter() - start) * 1000)
        log.info(
            "saved state stored",
            extra={"state_id": state.id, "count": len(candidate), "bytes": self._usage},
        )
        return state

    def overwrite_state(
        self,
        state_id: str,
        name: str,
        image: ImageSource,
        transform: TransformRecord,
    ) -> SavedState:
        """Fully replace an existing snapshot, keeping its id and position."""
        log = _operation_log()
        previous = self.get_state(state_id)
        clean_name = self._validate_name(name)
        image_data, thumbnail = self._encode_snapshot(image)
        replacement = SavedState(
            id=previous.id,
            name=clean_name,
            timestamp=int(self._clock() * 1000),
            image_data=image_data,
            transform=transform,
            thumbnail=thumbnail,
        )
        self._commit(
            lambda current: tuple(replacement if s.id == state_id else s for s in current),
            log,
            limit_message="Storage limit reached. Please delete some saved states first.",
            metric="overwrite",
        )
        saved_state_metrics.record("overwrite")
        log.info("saved state overwritten", extra={"state_id": state_id, "bytes": self._usage})
        return replacement

    def delete_state(self, state_id: str) -> None:
        """Remove the snapshot with ``state_id``; unknown ids are ignored."""
        if not any(s.id == state_id for s in self._states):
            LOGGER.debug("delete ignored, unknown id", extra={"state_id": state_id})
            return
        log = _operation_log()
        candidate = self._commit(
            lambda current: tuple(s for s in current if s.id != state_id),
            log,
            metric="delete",
        )
        saved_state_metrics.record("delete")
        log.info("saved state deleted", extra={"state_id": state_id, "count": len(candidate)})

    def clear_all_states(self) -> None:
        """Drop every snapshot and remove the persisted value."""
        log = _operation_log()
        with self._lock:
            try:
                self.storage.remove(self.key)
            except PersistenceError as exc:
                saved_state_metrics.record("persist_failure")
                log.error("clear failed", extra={"error": str(exc)})
                raise
            self._states = ()
            self._usage = 0
        saved_state_metrics.record("clear")
        log.info("saved states cleared")

    def import_states(self, document: Union[str, bytes]) -> List[SavedState]:
        """Validate ``document`` and prepend its entries.

        Imported entries replace existing entries with the same id and the
        entries that survive the state cap are returned.  The
        import is rejected as a whole on any schema error or cap violation.
        """
        log = _operation_log()
        try:
            imported = deserialize_states(document)
        except ImportFormatError as exc:
            saved_state_metrics.record("import_rejected")
            log.warning("import rejected", extra={"error": str(exc)})
            raise
        imported_ids = {state.id for state in imported}

        def _merge(current: Tuple[SavedState, ...]) -> Tuple[SavedState, ...]:
            kept = tuple(s for s in current if s.id not in imported_ids)
            return (tuple(imported) + kept)[: self.limits.max_states]

        committed = self._commit(
            _merge,
            log,
            limit_message="Import would exceed storage limit",
            metric="import",
        )
        landed = [s for s in committed if s.id in imported_ids]
        saved_state_metrics.record("import")
        log.info(
            "saved states imported",
            extra={"count": len(landed), "dropped": len(imported) - len(landed), "bytes": self._usage},
        )
        return landed

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export_states(self) -> str:
        """Return the JSON interchange document for all snapshots."""
        return serialize_states(self._states)

    def export_document(self, now: Optional[datetime] = None) -> ExportDocument:
        """Return the export document together with a timestamped filename."""
        moment = now or datetime.now(timezone.utc)
        stamp = moment.isoformat(timespec="milliseconds")
        return ExportDocument(
            filename=f"{config.STATES_EXPORT_PREFIX}-{stamp}.json",
            content=self.export_states(),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_name(name: str) -> str:
        clean = (name or "").strip()
        if not clean:
            raise InvalidStateNameError("Please enter a name for this state")
        return clean

    @staticmethod
    def _encode_snapshot(image: ImageSource) -> Tuple[str, str]:
        """Return ``(image_data, thumbnail)`` data URLs for ``image``."""
        if isinstance(image, bytes):
            source = decode_image(image).image
        elif isinstance(image, str):
            source = decode_data_url(image)
        else:
            source = image
        compressed = compress_image(
            source,
            config.STATE_IMAGE_MAX_DIMENSION,
            config.STATE_IMAGE_MAX_DIMENSION,
        )
        quality = max(config.STATE_IMAGE_MIN_QUALITY, min(1.0, config.STATE_IMAGE_QUALITY))
        image_data = encode_data_url(compressed, "image/jpeg", quality)
        thumbnail = encode_data_url(
            make_thumbnail(compressed, config.THUMBNAIL_MAX_SIZE),
            "image/jpeg",
            config.THUMBNAIL_QUALITY,
        )
        return image_data, thumbnail

    def _commit(
        self,
        build: Callable[[Tuple[SavedState, ...]], Tuple[SavedState, ...]],
        log: logging.LoggerAdapter,
        *,
        metric: str,
        limit_message: str = "Storage limit reached",
    ) -> Tuple[SavedState, ...]:
        """Build the next collection, check caps, write it whole, then adopt it."""
        with self._lock:
            return self._commit_locked(build(self._states), log, metric=metric, limit_message=limit_message)

    def _commit_locked(
        self,
        candidate: Tuple[SavedState, ...],
        log: logging.LoggerAdapter,
        *,
        metric: str,
        limit_message: str,
    ) -> Tuple[SavedState, ...]:
        document = serialize_states(candidate)
        usage = len(document.encode("utf-8"))
        if usage > self.limits.max_storage_size:
            saved_state_metrics.record(f"{metric}_rejected")
            log.warning(
                "storage limit reached",
                extra={"bytes": usage, "limit": self.limits.max_storage_size},
            )
            raise StorageLimitError(limit_message)
        try:
            self.storage.set(self.key, document)
        except PersistenceError as exc:
            saved_state_metrics.record("persist_failure")
            log.error("persisting saved states failed", extra={"error": str(exc)})
            raise PersistenceError(
                f"Storage backend rejected the write. Please delete some saved states first. ({exc})"
            ) from exc
        self._states = candidate
        self._usage = usage
        return candidate
