"""Typed pixel buffers and color-space conversions.

Every image owns a numpy buffer laid out row-major as ``(height, width)`` or
``(height, width, channels)``.  Channel values are floats in ``[0, 1]`` (hue
included, normalized rather than in degrees) and binary images hold booleans.
All operations here return freshly allocated images.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ClassVar, Dict, Tuple, Type, TypeVar

import numpy as np
from PIL import Image as PILImage

from ..core.types import Array
from .geometry import AnchorX, AnchorY, BoundingRect

# Below this chroma the color is treated as a shade of grey (hue undefined).
CHROMA_EPSILON = 1e-5

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


@dataclass(frozen=True)
class RGBPixel:
    r: float
    g: float
    b: float


@dataclass(frozen=True)
class HSVPixel:
    h: float
    s: float
    v: float


@dataclass(frozen=True)
class GrayscalePixel:
    value: float


@dataclass(frozen=True)
class BinaryPixel:
    value: bool


class Image:
    """Base class for the typed images; subclasses fix the channel layout."""

    channels: ClassVar[int] = 0
    dtype: ClassVar[type] = np.float64

    def __init__(self, width: int, height: int, pixels: Array) -> None:
        buffer = np.array(pixels, dtype=self.dtype)
        expected = width * height * max(1, self.channels)
        if width < 0 or height < 0 or buffer.size != expected:
            raise ValueError(
                f"{type(self).__name__} {width}x{height} needs {expected} values, "
                f"got {buffer.size}"
            )
        shape = (height, width, self.channels) if self.channels else (height, width)
        self.width = int(width)
        self.height = int(height)
        self.pixels = buffer.reshape(shape)

    @classmethod
    def from_array(cls: Type["ImageT"], pixels: Array) -> "ImageT":
        pixels = np.asarray(pixels)
        return cls(int(pixels.shape[1]), int(pixels.shape[0]), pixels)

    @classmethod
    def blank(cls: Type["ImageT"], width: int, height: int) -> "ImageT":
        shape = (height, width, cls.channels) if cls.channels else (height, width)
        return cls(width, height, np.zeros(shape, dtype=cls.dtype))

    @property
    def rect(self) -> BoundingRect:
        return BoundingRect(0, 0, self.width, self.height)

    def copy(self: "ImageT") -> "ImageT":
        return type(self)(self.width, self.height, self.pixels)

    def _check_bounds(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(
                f"Pixel ({x}, {y}) outside {self.width}x{self.height} image"
            )

    def pixel(self, x: int, y: int):
        self._check_bounds(x, y)
        return self._make_pixel(self.pixels[y, x])

    def _make_pixel(self, value):  # pragma: no cover - overridden
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.width == other.width and self.height == other.height and bool(
            np.array_equal(self.pixels, other.pixels)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(width={self.width}, height={self.height})"


ImageT = TypeVar("ImageT", bound=Image)


class RGBImage(Image):
    channels = 3

    def _make_pixel(self, value) -> RGBPixel:
        return RGBPixel(float(value[0]), float(value[1]), float(value[2]))


class HSVImage(Image):
    channels = 3

    def _make_pixel(self, value) -> HSVPixel:
        return HSVPixel(float(value[0]), float(value[1]), float(value[2]))


class GrayscaleImage(Image):
    channels = 0

    def _make_pixel(self, value) -> GrayscalePixel:
        return GrayscalePixel(float(value))

    def flatten(self) -> Array:
        return self.pixels.reshape(-1).copy()


class BinaryImage(Image):
    channels = 0
    dtype = np.bool_

    def _make_pixel(self, value) -> BinaryPixel:
        return BinaryPixel(bool(value))


# ---------------------------------------------------------------------------
# Color-space conversions


def rgb_to_hsv(image: RGBImage) -> HSVImage:
    """Max/min-channel HSV with hue normalized to ``[0, 1)``."""

    rgb = image.pixels
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    v = rgb.max(axis=-1)
    chroma = v - rgb.min(axis=-1)
    grey = (chroma < CHROMA_EPSILON) | (v < CHROMA_EPSILON)
    safe_chroma = np.where(grey, 1.0, chroma)
    safe_v = np.where(v < CHROMA_EPSILON, 1.0, v)

    # Raw hue lies in [-1, 5) before scaling: R max -> [-1, 1), G -> [1, 3), B -> [3, 5)
    h_raw = np.where(
        r >= v,
        (g - b) / safe_chroma,
        np.where(g >= v, 2.0 + (b - r) / safe_chroma, 4.0 + (r - g) / safe_chroma),
    )
    h = h_raw / 6.0
    h = np.where(h < 0.0, h + 1.0, h)
    h = np.where(grey, 0.0, h)
    s = np.where(grey, 0.0, chroma / safe_v)
    return HSVImage(image.width, image.height, np.stack([h, s, v], axis=-1))


def hsv_to_rgb(image: HSVImage) -> RGBImage:
    hsv = image.pixels
    h, s, v = hsv[..., 0], hsv[..., 1], hsv[..., 2]
    h6 = (h % 1.0) * 6.0
    sector = np.floor(h6).astype(int) % 6
    f = h6 - np.floor(h6)
    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))
    conditions = [sector == i for i in range(6)]
    r = np.select(conditions, [v, q, p, p, t, v])
    g = np.select(conditions, [t, v, v, q, p, p])
    b = np.select(conditions, [p, p, t, v, v, q])
    return RGBImage(image.width, image.height, np.stack([r, g, b], axis=-1))


def rgb_to_grayscale(image: RGBImage) -> GrayscaleImage:
    gray = image.pixels @ LUMA_WEIGHTS
    return GrayscaleImage(image.width, image.height, np.clip(gray, 0.0, 1.0))


def grayscale_to_rgb(image: GrayscaleImage) -> RGBImage:
    return RGBImage(image.width, image.height, np.repeat(image.pixels[..., None], 3, axis=-1))


def grayscale_to_binary(image: GrayscaleImage, threshold: float = 0.5) -> BinaryImage:
    return BinaryImage(image.width, image.height, image.pixels >= threshold)


def binary_to_grayscale(image: BinaryImage) -> GrayscaleImage:
    return GrayscaleImage(image.width, image.height, image.pixels.astype(np.float64))


_CONVERSIONS: Dict[Tuple[type, type], Callable[..., Image]] = {
    (RGBImage, HSVImage): rgb_to_hsv,
    (HSVImage, RGBImage): hsv_to_rgb,
    (RGBImage, GrayscaleImage): rgb_to_grayscale,
    (GrayscaleImage, RGBImage): grayscale_to_rgb,
    (GrayscaleImage, BinaryImage): grayscale_to_binary,
    (BinaryImage, GrayscaleImage): binary_to_grayscale,
}


def convert(image: Image, target: Type[ImageT], **options) -> ImageT:
    """Convert ``image`` to ``target``; ``threshold`` applies to binarization."""

    source = type(image)
    if source is target:
        return image.copy()  # type: ignore[return-value]
    try:
        fn = _CONVERSIONS[(source, target)]
    except KeyError as exc:
        raise TypeError(
            f"No conversion from {source.__name__} to {target.__name__}"
        ) from exc
    return fn(image, **options)  # type: ignore[return-value]


def hsv_in_range(
    image: HSVImage,
    lower: Tuple[float, float, float],
    upper: Tuple[float, float, float],
) -> BinaryImage:
    """Mask of pixels whose (h, s, v) lie inside the inclusive box.

    A lower hue above the upper hue selects a range that wraps through red.
    """

    h, s, v = (image.pixels[..., i] for i in range(3))
    if lower[0] <= upper[0]:
        hue_ok = (h >= lower[0]) & (h <= upper[0])
    else:
        hue_ok = (h >= lower[0]) | (h <= upper[0])
    mask = hue_ok & (s >= lower[1]) & (s <= upper[1]) & (v >= lower[2]) & (v <= upper[2])
    return BinaryImage(image.width, image.height, mask)


def mask_image(image: ImageT, mask: BinaryImage) -> ImageT:
    """Black out every pixel of ``image`` where ``mask`` is off."""

    if (mask.width, mask.height) != (image.width, image.height):
        raise ValueError("mask and image sizes differ")
    keep = mask.pixels if image.channels == 0 else mask.pixels[..., None]
    return type(image)(image.width, image.height, np.where(keep, image.pixels, 0))


# ---------------------------------------------------------------------------
# Geometry


def crop(image: ImageT, rect: BoundingRect) -> ImageT:
    """Copy of the ``rect`` region; the rect must be fully inside ``image``."""

    if not image.rect.contains(rect):
        raise ValueError(
            f"Crop {rect} is not contained in {image.width}x{image.height} image"
        )
    region = image.pixels[rect.top : rect.bottom, rect.left : rect.right]
    return type(image)(rect.width, rect.height, region)


def overlay(
    foreground: ImageT,
    background: ImageT,
    x: int,
    y: int,
    anchor_x: AnchorX = AnchorX.LEFT,
    anchor_y: AnchorY = AnchorY.TOP,
) -> ImageT:
    """Composite ``foreground`` onto a copy of ``background``.

    ``(x, y)`` is where the foreground's anchor point lands; whatever falls
    outside the background is clipped.
    """

    if type(foreground) is not type(background):
        raise TypeError("overlay() needs images of the same type")
    result = background.copy()
    placed = BoundingRect.anchored(
        x, y, foreground.width, foreground.height, anchor_x, anchor_y
    )
    visible = placed.intersection(background.rect)
    if visible is None:
        return result
    src_x = visible.left - placed.left
    src_y = visible.top - placed.top
    result.pixels[visible.top : visible.bottom, visible.left : visible.right] = (
        foreground.pixels[src_y : src_y + visible.height, src_x : src_x + visible.width]
    )
    return result


def resize(image: ImageT, width: int, height: int) -> ImageT:
    """Box-filter resize, one float plane at a time."""

    if (width, height) == (image.width, image.height):
        return image.copy()
    planes = image.pixels.astype(np.float32)
    if image.channels == 0:
        planes = planes[..., None]
    resized = []
    for idx in range(planes.shape[-1]):
        plane = PILImage.fromarray(np.ascontiguousarray(planes[..., idx]))
        resized.append(np.asarray(plane.resize((width, height), PILImage.Resampling.BOX)))
    stacked = np.stack(resized, axis=-1)
    if image.channels == 0:
        stacked = stacked[..., 0]
    if isinstance(image, BinaryImage):
        stacked = stacked >= 0.5
    return type(image)(width, height, stacked)


# ---------------------------------------------------------------------------
# File I/O


def load_rgb_image(path: str | Path) -> RGBImage:
    with PILImage.open(path) as handle:
        rgb = np.asarray(handle.convert("RGB"), dtype=np.float64) / 255.0
    return RGBImage.from_array(rgb)


def save_image(image: Image, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(image, HSVImage):
        image = hsv_to_rgb(image)
    data = np.clip(np.rint(image.pixels.astype(np.float64) * 255.0), 0, 255).astype(np.uint8)
    PILImage.fromarray(data).save(path)
    return path


__all__ = [
    "BinaryImage",
    "BinaryPixel",
    "GrayscaleImage",
    "GrayscalePixel",
    "HSVImage",
    "HSVPixel",
    "Image",
    "RGBImage",
    "RGBPixel",
    "binary_to_grayscale",
    "convert",
    "crop",
    "grayscale_to_binary",
    "grayscale_to_rgb",
    "hsv_in_range",
    "hsv_to_rgb",
    "load_rgb_image",
    "mask_image",
    "overlay",
    "resize",
    "rgb_to_grayscale",
    "rgb_to_hsv",
    "save_image",
]
