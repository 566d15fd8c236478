"""Deterministic compositing of an image, a transform and an overlay.

The compositor is stateless.  The output surface is always passed in or
created here; nothing is looked up implicitly.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from . import config
from .errors import NothingToRenderError
from .transform import TransformRecord
from .utils.image_operations import cover_placement, draw_overlay, draw_placed_image
from .utils.image_processor import encode_image
from .utils.validation import validate_output_directory

LOGGER = logging.getLogger(__name__)


class ExportFormat(Enum):
    """Closed set of export encodings."""

    PNG = ("image/png", "PNG", "png", False)
    JPEG = ("image/jpeg", "JPEG", "jpeg", True)
    WEBP = ("image/webp", "WEBP", "webp", True)

    def __init__(self, mime_type: str, pil_format: str, extension: str, lossy: bool) -> None:
        self.mime_type = mime_type
        self.pil_format = pil_format
        self.extension = extension
        self.lossy = lossy

    @classmethod
    def from_mime(cls, value: Union[str, "ExportFormat"]) -> "ExportFormat":
        if isinstance(value, ExportFormat):
            return value
        for fmt in cls:
            if value.lower() in (fmt.mime_type, fmt.extension, fmt.name.lower()):
                return fmt
        raise ValueError(f"Unsupported export format: {value}")


@dataclass(frozen=True)
class ExportArtifact:
    """An encoded, named export ready to be written or downloaded."""

    filename: str
    mime_type: str
    data: bytes

    def write_to(self, directory: Union[str, Path]) -> Path:
        """Write the artifact into ``directory`` and return its path."""
        target = validate_output_directory(directory) / self.filename
        target.write_bytes(self.data)
        LOGGER.info("Exported %s (%d bytes)", target, len(self.data))
        return target


def new_surface(output_size: int) -> Image.Image:
    """Return a transparent square surface."""
    if output_size <= 0:
        raise ValueError("output_size must be greater than zero")
    return Image.new("RGBA", (output_size, output_size), (0, 0, 0, 0))


def render_into(
    surface: Image.Image,
    image: Optional[Image.Image],
    transform: TransformRecord,
    *,
    bar_ratio: float = config.OVERLAY_BAR_RATIO,
) -> Image.Image:
    """Draw ``image`` under ``transform`` onto an explicit square ``surface``.

    The surface is cleared first so results never depend on prior contents.
    """
    if image is None or image.width <= 0 or image.height <= 0:
        raise NothingToRenderError("No image loaded")
    if surface.mode != "RGBA" or surface.width != surface.height:
        raise ValueError("surface must be a square RGBA image")

    surface.paste((0, 0, 0, 0), (0, 0, surface.width, surface.height))
    placement = cover_placement(
        image.size,
        surface.width,
        transform.scale,
        transform.offset_x,
        transform.offset_y,
    )
    draw_placed_image(surface, image, placement)
    draw_overlay(surface, transform.overlay_type, bar_ratio)
    return surface


def render(
    image: Optional[Image.Image],
    transform: TransformRecord,
    output_size: int = config.CANVAS_SIZE,
    surface: Optional[Image.Image] = None,
) -> Image.Image:
    """Render onto ``surface`` or onto a fresh ``output_size`` square."""
    if surface is None:
        surface = new_surface(output_size)
    elif surface.size != (output_size, output_size):
        raise ValueError("surface size does not match output_size")
    return render_into(surface, image, transform)


def export_filename(fmt: ExportFormat, now: Optional[datetime] = None) -> str:
    """Return ``edited-image-<timestamp>.<ext>`` for ``now``."""
    moment = now or datetime.now(timezone.utc)
    stamp = moment.isoformat(timespec="milliseconds").replace(":", "-").replace(".", "-")
    return f"{config.EXPORT_FILENAME_PREFIX}-{stamp}.{fmt.extension}"


def _quality_fraction(quality: Optional[float]) -> float:
    if quality is None:
        return config.EXPORT_QUALITY_DEFAULT
    fraction = float(quality)
    if not math.isfinite(fraction):
        LOGGER.debug("Ignoring non-finite export quality %r", quality)
        return config.EXPORT_QUALITY_DEFAULT
    return min(max(fraction, 0.0), 1.0)


def export(
    image: Optional[Image.Image],
    transform: TransformRecord,
    output_size: int = config.CANVAS_SIZE,
    fmt: Union[str, ExportFormat] = ExportFormat.PNG,
    quality: Optional[float] = None,
    *,
    now: Optional[datetime] = None,
) -> ExportArtifact:
    """Render and encode the result in one of the supported formats.

    ``quality`` is ignored for PNG and clamped to [0, 1] for lossy formats.
    A missing or non-finite quality uses the default of 0.9.
    """
    export_format = ExportFormat.from_mime(fmt)
    rendered = render(image, transform, output_size)
    if export_format.lossy:
        data = encode_image(rendered, export_format.pil_format, _quality_fraction(quality))
    else:
        data = encode_image(rendered, export_format.pil_format)
    return ExportArtifact(
        filename=export_filename(export_format, now),
        mime_type=export_format.mime_type,
        data=data,
    )


__all__ = [
    "ExportArtifact",
    "ExportFormat",
    "export",
    "export_filename",
    "new_surface",
    "render",
    "render_into",
]
