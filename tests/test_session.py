"""Unit tests for the editor session service."""

from __future__ import annotations

import io
import logging

import pytest
from PIL import Image

from promoframe.controllers import EditorSession, SettingsMemoryPolicy
from promoframe.errors import (
    CorruptImageError,
    NothingToRenderError,
    StaleOperationError,
    UnknownStateError,
    UnsupportedFileTypeError,
)
from promoframe.managers import PreferencesManager, SavedStateManager
from promoframe.storage import MemoryStorage
from promoframe.tasks import DeferredTaskRunner, ExecutorTaskRunner
from promoframe.transform import DEFAULT_TRANSFORM, OverlayType, TransformRecord


def png_bytes(colour="red", size=(64, 48)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, colour).save(buffer, format="PNG")
    return buffer.getvalue()


def make_session(storage=None, **kwargs) -> EditorSession:
    storage = storage if storage is not None else MemoryStorage()
    return EditorSession(SavedStateManager(storage), **kwargs)


def test_nothing_to_render_without_image():
    session = make_session()

    with pytest.raises(NothingToRenderError):
        session.render()
    with pytest.raises(NothingToRenderError):
        session.export()
    with pytest.raises(NothingToRenderError):
        session.save_current_state("Empty")
    assert not session.has_image


def test_load_image_starts_fresh_history():
    session = make_session()
    session.update_transform(scale=1.5)

    loaded = session.load_image(png_bytes())

    assert session.has_image
    assert loaded.fingerprint
    assert session.transform == DEFAULT_TRANSFORM
    assert not session.can_undo
    assert session.render().size == (600, 600)


def test_failed_upload_keeps_current_image():
    session = make_session()
    session.load_image(png_bytes("blue"))
    session.update_transform(scale=1.3)

    with pytest.raises(UnsupportedFileTypeError):
        session.load_image(b"GIF89a not really")
    with pytest.raises(CorruptImageError):
        session.load_image(png_bytes()[:40], "image/png")

    assert session.image.getpixel((0, 0)) == (0, 0, 255)
    assert session.transform.scale == 1.3
    assert session.can_undo


def test_undo_redo_through_session():
    session = make_session()
    session.load_image(png_bytes())
    session.update_transform(scale=1.5)
    session.update_transform(offset_x=-20)

    assert session.undo() == TransformRecord(scale=1.5)
    assert session.redo() == TransformRecord(scale=1.5, offset_x=-20.0)
    assert session.history.past == (DEFAULT_TRANSFORM, TransformRecord(scale=1.5))


def test_select_overlay_toggles():
    session = make_session()

    assert session.select_overlay("cinematic").overlay_type is OverlayType.CINEMATIC
    assert session.select_overlay(OverlayType.CINEMATIC).overlay_type is None
    session.select_overlay(OverlayType.CINEMATIC)
    assert session.select_overlay("full-frame").overlay_type is OverlayType.FULL_FRAME
    assert session.select_overlay(None).overlay_type is None
    assert len(session.history.past) == 5


def test_update_transform_sets_overlay_without_toggling():
    session = make_session()
    session.update_transform(overlay_type="cinematic")
    assert session.update_transform(overlay_type="cinematic").overlay_type is OverlayType.CINEMATIC


def test_keyboard_steps():
    session = make_session()

    assert session.nudge(1, 0).offset_x == 1.0
    assert session.nudge(0, -1, large=True).offset_y == -10.0
    assert session.zoom_by(1).scale == pytest.approx(1.01)
    assert session.zoom_by(-1, large=True).scale == pytest.approx(0.91)
    assert session.zoom_wheel(-100).scale == pytest.approx(1.001)


def test_reset_uses_preferred_default():
    storage = MemoryStorage()
    preferences = PreferencesManager(storage)
    preferred = TransformRecord(scale=1.2, overlay_type=OverlayType.CINEMATIC)
    preferences.update(default_transform=preferred)
    session = make_session(storage, preferences=preferences)

    session.load_image(png_bytes())
    assert session.transform == preferred
    session.update_transform(scale=1.9)

    assert session.reset() == preferred
    assert not session.can_undo
    assert not session.can_redo


def test_restore_replaces_image_and_history():
    session = make_session()
    session.load_image(png_bytes("red"))
    saved_transform = TransformRecord(scale=1.5, offset_x=-20.0, overlay_type=OverlayType.CINEMATIC)
    session.update_transform(**{"scale": 1.5, "offset_x": -20.0, "overlay_type": "cinematic"})
    state = session.save_current_state("Poster")
    session.load_image(png_bytes("blue"))
    session.update_transform(offset_y=30)

    loaded = session.restore_state(state.id)

    assert loaded.state_id == state.id
    assert session.transform == saved_transform
    assert session.history.past == ()
    assert session.history.future == ()
    red, green, blue = session.image.getpixel((32, 24))
    assert red > 200 and green < 60 and blue < 60


def test_restore_clamps_imported_transform():
    session = make_session()
    session.load_image(png_bytes())
    state = session.save_current_state("Raw")
    session.store.import_states(
        session.store.export_states().replace('"scale":1.0', '"scale":9.5')
    )

    session.restore_state(state.id)

    assert session.transform.scale == 2.0


def test_restore_unknown_state():
    with pytest.raises(UnknownStateError):
        make_session().restore_state("missing")


def test_export_artifact():
    session = make_session()
    session.load_image(png_bytes())
    session.select_overlay(OverlayType.FULL_FRAME)

    artifact = session.export("image/jpeg", 0.5)

    assert artifact.mime_type == "image/jpeg"
    assert session.last_export is artifact
    with Image.open(io.BytesIO(artifact.data)) as decoded:
        assert decoded.size == (600, 600)
        assert decoded.getpixel((0, 300)) == pytest.approx((0, 0, 0), abs=8)


def test_settings_are_remembered_per_image():
    session = make_session()
    session.load_image(png_bytes("red"))
    session.update_transform(scale=1.5)

    session.load_image(png_bytes("blue"))
    assert session.transform == DEFAULT_TRANSFORM

    loaded = session.load_image(png_bytes("red"))
    assert loaded.restored_settings
    assert session.transform == TransformRecord(scale=1.5)
    assert not session.can_undo


def test_settings_memory_respects_preference():
    storage = MemoryStorage()
    preferences = PreferencesManager(storage)
    preferences.update(auto_save_settings=False)
    session = make_session(storage, preferences=preferences)

    session.load_image(png_bytes("red"))
    session.update_transform(scale=1.5)

    assert len(session.settings_memory) == 0


def test_restores_are_not_remembered_by_default():
    storage = MemoryStorage()
    writer = make_session(storage)
    writer.load_image(png_bytes())
    state = writer.save_current_state("Shared")

    uploads_only = make_session(storage)
    uploads_only.restore_state(state.id)
    uploads_only.update_transform(scale=1.4)
    assert len(uploads_only.settings_memory) == 0

    tracking = make_session(storage, memory_policy=SettingsMemoryPolicy.INCLUDE_RESTORES)
    tracking.restore_state(state.id)
    tracking.update_transform(scale=1.4)
    assert len(tracking.settings_memory) == 1


def test_fingerprint_failure_does_not_block_upload(monkeypatch, caplog):
    def broken(_image):
        raise MemoryError("no room")

    monkeypatch.setattr("promoframe.controllers.session.fingerprint_image", broken)
    session = make_session()

    with caplog.at_level(logging.WARNING):
        loaded = session.load_image(png_bytes())

    assert loaded.fingerprint is None
    assert "fingerprint failed" in caplog.text
    session.update_transform(scale=1.2)
    assert len(session.settings_memory) == 0


def test_latest_upload_wins():
    runner = DeferredTaskRunner()
    session = make_session(runner=runner)

    older = session.upload_image(png_bytes("red"))
    newer = session.upload_image(png_bytes("blue"))
    runner.run_next(newest=True)
    runner.run_next()

    assert newer.result().source == "upload"
    with pytest.raises(StaleOperationError):
        older.result()
    assert session.image.getpixel((0, 0)) == (0, 0, 255)


def test_restore_supersedes_pending_upload():
    runner = DeferredTaskRunner()
    session = make_session(runner=runner)
    session.load_image(png_bytes("green"))
    state = session.save_current_state("Green")

    pending = session.upload_image(png_bytes("red"))
    session.restore_state(state)
    runner.run_pending()

    assert isinstance(pending.exception(), StaleOperationError)
    assert session.loaded_image.source == "restore"


def test_export_after_reset_is_stale():
    runner = DeferredTaskRunner()
    session = make_session(runner=runner)
    session.load_image(png_bytes())

    stale = session.export_async("image/png")
    session.reset()
    fresh = session.export_async("image/png")
    runner.run_pending()

    assert isinstance(stale.exception(), StaleOperationError)
    assert fresh.result().mime_type == "image/png"
    assert session.last_export is fresh.result()


def test_upload_errors_surface_through_future():
    session = make_session()
    future = session.upload_image(b"definitely not an image", "image/png")
    assert isinstance(future.exception(), CorruptImageError)
    assert not session.has_image


def test_async_save_on_worker_thread():
    runner = ExecutorTaskRunner()
    session = make_session(runner=runner)
    try:
        session.load_image(png_bytes())
        state = session.save_current_state_async("Background").result(timeout=10)
    finally:
        session.close()

    assert session.store.get_state(state.id).name == "Background"


def test_overwrite_saved_state_keeps_name():
    session = make_session()
    session.load_image(png_bytes())
    state = session.save_current_state("Keep me")
    session.update_transform(offset_x=15)

    updated = session.overwrite_saved_state(state.id)

    assert updated.name == "Keep me"
    assert session.store.get_state(state.id).transform.offset_x == 15.0


def test_load_image_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes())
    session = make_session()

    session.load_image_file(path)

    assert session.image.size == (64, 48)
