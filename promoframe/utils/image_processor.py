"""Decoding, encoding and fingerprinting of editor images."""

from __future__ import annotations

import base64
import binascii
import hashlib
import io
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .. import config
from ..errors import CorruptImageError, FileTooLargeError
from .validation import validate_image_path, validate_upload

LOGGER = logging.getLogger(__name__)

VALID_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


@dataclass(slots=True)
class DecodedImage:
    """
    A validated upload.

    Attributes:
        image (Image.Image): Fully loaded, orientation-corrected pixels
        mime_type (str): Accepted MIME type of the source bytes
        byte_size (int): Size of the source bytes
    """
    image: Image.Image
    mime_type: str
    byte_size: int

    @property
    def size(self):
        return self.image.size


def decode_image(
    data: bytes,
    mime_type: Optional[str] = None,
    *,
    max_size: int = config.MAX_FILE_SIZE,
    max_pixels: int = config.MAX_IMAGE_PIXELS,
) -> DecodedImage:
    """
    Validate and decode raw upload bytes.

    Args:
        data: Encoded image bytes
        mime_type: Declared type of the upload, sniffed from the bytes when omitted
        max_size: Byte limit for uploads
        max_pixels: Limit on width * height, checked before pixels are decoded

    Returns:
        DecodedImage: The decoded image

    Raises:
        UnsupportedFileTypeError, FileTooLargeError: Before decoding
        CorruptImageError: If the bytes do not decode to a usable image
    """
    accepted = validate_upload(data, mime_type, max_size=max_size)
    try:
        with Image.open(io.BytesIO(data)) as probe:
            dimensions = probe.size
            probe.verify()
    except Image.DecompressionBombError as exc:
        LOGGER.warning("Rejected oversized upload: %s", exc)
        raise FileTooLargeError(_too_many_pixels(max_pixels)) from exc
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        LOGGER.warning("Rejected undecodable upload: %s", exc)
        raise CorruptImageError("Invalid image file") from exc

    width, height = dimensions
    if width <= 0 or height <= 0:
        raise CorruptImageError("Invalid image file")
    if width * height > max_pixels:
        LOGGER.warning("Rejected upload of %dx%d pixels", width, height)
        raise FileTooLargeError(_too_many_pixels(max_pixels))

    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            img.load()
            image = _normalize_mode(img)
    except Image.DecompressionBombError as exc:
        raise FileTooLargeError(_too_many_pixels(max_pixels)) from exc
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        LOGGER.warning("Rejected undecodable upload: %s", exc)
        raise CorruptImageError("Invalid image file") from exc
    return DecodedImage(image=image, mime_type=accepted, byte_size=len(data))


def _too_many_pixels(max_pixels: int) -> str:
    return f"Image dimensions must not exceed {max_pixels / 1_000_000:g} megapixels"


def read_image_file(path: Union[str, Path]) -> bytes:
    """Return the bytes of a validated image file on disk."""
    safe_path = validate_image_path(path, VALID_EXTENSIONS)
    return safe_path.read_bytes()


def _normalize_mode(image: Image.Image) -> Image.Image:
    """Return an RGB or RGBA copy of ``image``."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )
    target = "RGBA" if has_alpha else "RGB"
    if image.mode == target:
        return image.copy()
    return image.convert(target)


def quality_to_pil(quality: float, *, minimum: float = 0.0) -> int:
    """Map a [0, 1] quality fraction onto Pillow's integer scale."""
    fraction = float(quality)
    if not math.isfinite(fraction):
        fraction = config.EXPORT_QUALITY_DEFAULT
    fraction = min(max(fraction, minimum), 1.0)
    return max(1, int(round(fraction * 100)))


def flatten(image: Image.Image, background=(0, 0, 0)) -> Image.Image:
    """Composite ``image`` onto an opaque background and drop alpha."""
    if image.mode == "RGB":
        return image
    rgba = image.convert("RGBA")
    base = Image.new("RGBA", rgba.size, background + (255,))
    base.alpha_composite(rgba)
    return base.convert("RGB")


def encode_image(image: Image.Image, pil_format: str, quality: Optional[float] = None) -> bytes:
    """Encode ``image`` with optimal settings for ``pil_format``."""
    save_params: Dict[str, Any] = {'format': pil_format}
    if pil_format == 'JPEG':
        image = flatten(image)
        save_params.update({
            'quality': quality_to_pil(config.EXPORT_QUALITY_DEFAULT if quality is None else quality),
            'optimize': True,
            'progressive': True,
        })
    elif pil_format == 'WEBP':
        save_params.update({
            'quality': quality_to_pil(config.EXPORT_QUALITY_DEFAULT if quality is None else quality),
            'method': 6,
        })
    elif pil_format == 'PNG':
        save_params.update({
            'optimize': True,
            'compress_level': 6,
        })
    else:
        raise ValueError(f"Unsupported encoder format: {pil_format}")

    buffer = io.BytesIO()
    image.save(buffer, **save_params)
    return buffer.getvalue()


def encode_data_url(image: Image.Image, mime_type: str = "image/jpeg", quality: Optional[float] = None) -> str:
    """Serialize ``image`` into a base64 data URL."""
    pil_format = _PIL_FORMATS.get(mime_type)
    if pil_format is None:
        raise ValueError(f"Unsupported MIME type: {mime_type}")
    payload = base64.b64encode(encode_image(image, pil_format, quality)).decode("ascii")
    return f"data:{mime_type};base64,{payload}"


def decode_data_url(data_url: str) -> Image.Image:
    """Decode a base64 data URL produced by :func:`encode_data_url`."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise CorruptImageError("Invalid image data")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CorruptImageError("Invalid image data") from exc
    mime_type = header[len("data:"):-len(";base64")]
    return decode_image(raw, mime_type or None, max_size=len(raw)).image


def fingerprint_image(image: Image.Image) -> str:
    """Return a content fingerprint of the decoded pixels."""
    digest = hashlib.sha1()
    digest.update(f"{image.mode}:{image.width}x{image.height}:".encode("ascii"))
    digest.update(image.tobytes())
    return digest.hexdigest()


__all__ = [
    "DecodedImage",
    "VALID_EXTENSIONS",
    "decode_image",
    "read_image_file",
    "quality_to_pil",
    "flatten",
    "encode_image",
    "encode_data_url",
    "decode_data_url",
    "fingerprint_image",
]
