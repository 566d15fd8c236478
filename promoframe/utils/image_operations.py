"""Reusable image manipulation operations.

This module centralizes the pixel-level helpers used by the compositor and
the saved-state store.  Functions are intentionally small and pure to keep
them easy to test and to encourage reuse.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageDraw

from ..transform import OverlayType

OVERLAY_COLOUR = (0, 0, 0, 255)


@dataclass(frozen=True)
class Placement:
    """Where the scaled image lands on the square output surface."""

    x: float
    y: float
    width: float
    height: float


def cover_placement(
    image_size: tuple[int, int],
    output_size: int,
    scale: float,
    offset_x: float,
    offset_y: float,
) -> Placement:
    """Return the placement of an image cover-fitted onto ``output_size``.

    The shorter image side fills the output side, the result is multiplied by
    ``scale``, centred and finally moved by the offsets.
    """
    width, height = image_size
    if width <= 0 or height <= 0:
        raise ValueError("image dimensions must be positive")
    aspect = width / height
    if aspect > 1:
        draw_height = float(output_size)
        draw_width = draw_height * aspect
    else:
        draw_width = float(output_size)
        draw_height = draw_width / aspect

    draw_width *= scale
    draw_height *= scale
    centre = output_size / 2
    return Placement(
        x=centre - draw_width / 2 + offset_x,
        y=centre - draw_height / 2 + offset_y,
        width=draw_width,
        height=draw_height,
    )


def draw_placed_image(surface: Image.Image, image: Image.Image, placement: Placement) -> None:
    """Resample the visible part of ``image`` onto ``surface`` in place.

    Only the region that intersects the surface is resampled, which keeps
    large scale factors cheap.
    """
    dest_left = max(0, int(round(placement.x)))
    dest_top = max(0, int(round(placement.y)))
    dest_right = min(surface.width, int(round(placement.x + placement.width)))
    dest_bottom = min(surface.height, int(round(placement.y + placement.height)))
    if dest_right <= dest_left or dest_bottom <= dest_top:
        return

    ratio_x = image.width / placement.width
    ratio_y = image.height / placement.height
    box = (
        min(max((dest_left - placement.x) * ratio_x, 0.0), image.width),
        min(max((dest_top - placement.y) * ratio_y, 0.0), image.height),
        min(max((dest_right - placement.x) * ratio_x, 0.0), image.width),
        min(max((dest_bottom - placement.y) * ratio_y, 0.0), image.height),
    )
    if box[2] <= box[0] or box[3] <= box[1]:
        return
    source = image if image.mode == "RGBA" else image.convert("RGBA")
    patch = source.resize(
        (dest_right - dest_left, dest_bottom - dest_top),
        Image.Resampling.BICUBIC,
        box=box,
    )
    surface.alpha_composite(patch, (dest_left, dest_top))


def overlay_bar_size(output_size: int, ratio: float) -> int:
    """Return the pixel thickness of overlay bars for ``output_size``."""
    return int(round(output_size * ratio))


def draw_overlay(surface: Image.Image, overlay_type: Optional[OverlayType], ratio: float) -> None:
    """Draw opaque bars for ``overlay_type`` on top of ``surface``."""
    if overlay_type is None:
        return
    size = surface.width
    bar = overlay_bar_size(size, ratio)
    if bar <= 0:
        return
    draw = ImageDraw.Draw(surface)
    # Rectangle coordinates are inclusive.
    draw.rectangle((0, 0, size - 1, bar - 1), fill=OVERLAY_COLOUR)
    draw.rectangle((0, size - bar, size - 1, size - 1), fill=OVERLAY_COLOUR)
    if overlay_type is OverlayType.FULL_FRAME:
        draw.rectangle((0, 0, bar - 1, size - 1), fill=OVERLAY_COLOUR)
        draw.rectangle((size - bar, 0, size - 1, size - 1), fill=OVERLAY_COLOUR)


def fit_within(size: tuple[int, int], max_width: int, max_height: int) -> tuple[int, int]:
    """Shrink ``size`` into the bounds keeping its aspect ratio.

    Dimensions are rounded to even numbers, which compresses better.
    """
    width, height = float(size[0]), float(size[1])
    aspect = width / height
    if width > max_width:
        width = float(max_width)
        height = width / aspect
    if height > max_height:
        height = float(max_height)
        width = height * aspect
    return max(2, int(round(width / 2)) * 2), max(2, int(round(height / 2)) * 2)


def compress_image(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Return ``image`` bounded to the given dimensions on a white background."""
    target = fit_within(image.size, max_width, max_height)
    resized = image.resize(target, Image.Resampling.LANCZOS) if target != image.size else image.copy()
    if resized.mode == "RGB":
        return resized
    canvas = Image.new("RGBA", resized.size, (255, 255, 255, 255))
    canvas.alpha_composite(resized.convert("RGBA"))
    return canvas.convert("RGB")


def thumbnail_size(size: tuple[int, int], max_size: int) -> tuple[int, int]:
    """Return the size that fits ``size`` into a ``max_size`` square."""
    width, height = size
    scale = min(max_size / width, max_size / height)
    return max(1, math.floor(width * scale)), max(1, math.floor(height * scale))


def make_thumbnail(image: Image.Image, max_size: int) -> Image.Image:
    """Return a small preview of ``image``."""
    return image.resize(thumbnail_size(image.size, max_size), Image.Resampling.LANCZOS)


__all__ = [
    "Placement",
    "cover_placement",
    "draw_placed_image",
    "overlay_bar_size",
    "draw_overlay",
    "fit_within",
    "compress_image",
    "thumbnail_size",
    "make_thumbnail",
]
