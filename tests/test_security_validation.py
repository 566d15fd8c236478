import pytest

from promoframe import config
from promoframe.errors import UnsupportedFileTypeError
from promoframe.utils.image_processor import VALID_EXTENSIONS
from promoframe.utils.validation import (
    sniff_mime_type,
    validate_image_path,
    validate_output_directory,
    validate_upload,
)


def test_validate_image_path_rejects_urls(tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        validate_image_path("http://example.com/a.png", VALID_EXTENSIONS)


def test_validate_image_path_rejects_bad_extension(tmp_path):
    f = tmp_path / "evil.txt"
    f.write_text("not an image")
    with pytest.raises(UnsupportedFileTypeError):
        validate_image_path(f, VALID_EXTENSIONS)


def test_validate_image_path_rejects_missing_file(tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        validate_image_path(tmp_path / "missing.png", VALID_EXTENSIONS)


def test_validate_output_directory_checks_directory(tmp_path):
    with pytest.raises(ValueError):
        validate_output_directory(tmp_path / "missing")
    assert validate_output_directory(tmp_path) == tmp_path.resolve()


def test_sniff_mime_type_signatures():
    assert sniff_mime_type(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
    assert sniff_mime_type(b"\x89PNG\r\n\x1a\nrest") == "image/png"
    assert sniff_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert sniff_mime_type(b"GIF89a") is None


def test_validate_upload_checks_type_before_size():
    with pytest.raises(UnsupportedFileTypeError):
        validate_upload(b"x" * 100, "text/plain", max_size=10)


def test_supported_types_cover_jpeg_png_webp():
    assert set(config.SUPPORTED_MIME_TYPES) == {"image/jpeg", "image/png", "image/webp"}
    assert {".jpg", ".jpeg", ".png", ".webp"} <= VALID_EXTENSIONS
