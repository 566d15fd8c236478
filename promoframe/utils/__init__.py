"""Utility package for promoframe."""

from . import image_operations, image_processor, validation

__all__ = ["image_operations", "image_processor", "validation"]
