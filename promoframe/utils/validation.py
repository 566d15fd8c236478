"""Input validation helpers for uploads and export destinations."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import urlparse

from .. import config
from ..errors import FileTooLargeError, UnsupportedFileTypeError

_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
)


def _has_url_scheme(path_str: str) -> bool:
    """Return True if *path_str* looks like a URL with a scheme.

    Single-letter schemes such as ``"C"`` are treated as drive letters on
    Windows and therefore ignored.
    """
    parsed = urlparse(path_str)
    return bool(parsed.scheme and len(parsed.scheme) > 1)


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Return the MIME type implied by the leading bytes of *data*."""
    for signature, mime_type in _SIGNATURES:
        if data.startswith(signature):
            return mime_type
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def validate_upload(
    data: bytes,
    mime_type: Optional[str] = None,
    *,
    max_size: int = config.MAX_FILE_SIZE,
    allowed_types: Iterable[str] = config.SUPPORTED_MIME_TYPES,
) -> str:
    """Check type and size of raw upload bytes before decoding.

    The declared *mime_type* wins over sniffing, mirroring how a browser
    reports ``File.type``.  Returns the accepted MIME type.
    """
    resolved = (mime_type or sniff_mime_type(data) or "").lower()
    if resolved not in {t.lower() for t in allowed_types}:
        raise UnsupportedFileTypeError("Please select a JPG, PNG, or WebP image")
    if len(data) > max_size:
        limit_mb = max_size / (1024 * 1024)
        raise FileTooLargeError(f"Image size must be less than {limit_mb:g}MB")
    return resolved


def validate_image_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Validate a user-supplied image *path*.

    The path must point to an existing file with an allowed extension and must
    not include a URL scheme.  Returns the resolved ``Path`` object.
    """
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise UnsupportedFileTypeError("URLs are not allowed")

    p = Path(path_str).expanduser()
    try:
        p = p.resolve(strict=True)
    except FileNotFoundError as exc:
        raise UnsupportedFileTypeError(f"File does not exist: {path_str}") from exc

    if not p.is_file():
        raise UnsupportedFileTypeError(f"Not a file: {path_str}")

    if p.suffix.lower() not in {ext.lower() for ext in allowed_exts}:
        raise UnsupportedFileTypeError("Please select a JPG, PNG, or WebP image")

    return p


def validate_output_directory(path: Union[str, Path]) -> Path:
    """Validate a directory that export artifacts are written into."""
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise ValueError("URLs are not allowed")

    p = Path(path_str).expanduser().resolve()
    if not p.is_dir():
        raise ValueError(f"Directory does not exist: {p}")
    return p
