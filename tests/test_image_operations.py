from PIL import Image

from promoframe.transform import OverlayType
from promoframe.utils.image_operations import (
    compress_image,
    cover_placement,
    draw_overlay,
    fit_within,
    make_thumbnail,
    overlay_bar_size,
    thumbnail_size,
)


def test_cover_placement_landscape_fills_height():
    placement = cover_placement((1920, 1080), 600, 1.0, 0.0, 0.0)
    assert placement.height == 600
    assert round(placement.width, 2) == 1066.67
    assert round(placement.x, 2) == -233.33
    assert placement.y == 0


def test_cover_placement_portrait_fills_width_and_applies_offsets():
    placement = cover_placement((500, 1000), 600, 2.0, 10.0, -5.0)
    assert placement.width == 1200
    assert placement.height == 2400
    assert placement.x == 300 - 600 + 10
    assert placement.y == 300 - 1200 - 5


def test_overlay_bar_size_rounds():
    assert overlay_bar_size(600, 0.1) == 60
    assert overlay_bar_size(606, 0.1) == 61


def test_draw_overlay_none_is_noop():
    surface = Image.new("RGBA", (20, 20), (255, 255, 255, 255))
    draw_overlay(surface, None, 0.1)
    assert surface.getpixel((0, 0)) == (255, 255, 255, 255)


def test_draw_overlay_full_frame_corners():
    surface = Image.new("RGBA", (20, 20), (255, 255, 255, 255))
    draw_overlay(surface, OverlayType.FULL_FRAME, 0.1)
    assert surface.getpixel((1, 10)) == (0, 0, 0, 255)
    assert surface.getpixel((2, 10)) == (255, 255, 255, 255)
    assert surface.getpixel((18, 10)) == (0, 0, 0, 255)


def test_fit_within_rounds_to_even():
    assert fit_within((4000, 3000), 2048, 2048) == (2048, 1536)
    assert fit_within((103, 51), 2048, 2048) == (104, 52)


def test_compress_image_flattens_on_white():
    img = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
    compressed = compress_image(img, 2048, 2048)
    assert compressed.mode == "RGB"
    assert compressed.getpixel((5, 5)) == (255, 255, 255)


def test_thumbnail_keeps_aspect():
    assert thumbnail_size((2048, 1536), 100) == (100, 75)
    assert make_thumbnail(Image.new("RGB", (400, 200)), 100).size == (100, 50)
