"""Pixel images and digit slot extraction."""

from .geometry import AnchorX, AnchorY, BoundingRect
from .image import BinaryImage, GrayscaleImage, HSVImage, Image, RGBImage

__all__ = [
    "AnchorX",
    "AnchorY",
    "BinaryImage",
    "BoundingRect",
    "GrayscaleImage",
    "HSVImage",
    "Image",
    "RGBImage",
]
