"""Cut the ammo counter into one normalized grayscale crop per digit slot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Sequence, Tuple

import numpy as np

from ..core.types import Array
from ..errors import ConfigError
from .geometry import BoundingRect
from .image import (
    BinaryImage,
    GrayscaleImage,
    RGBImage,
    crop,
    hsv_in_range,
    mask_image,
    resize,
    rgb_to_grayscale,
    rgb_to_hsv,
)

# Crops whose brightness range is below this are left unstretched so an empty
# slot does not turn its noise into a fake glyph.
MIN_CONTRAST = 0.1

ALIGNMENTS = ("left", "right")

HSV = Tuple[float, float, float]


@dataclass(frozen=True)
class DigitLayout:
    """Pre-measured position of every digit slot for one HUD resolution.

    Attributes
    ----------
    reference_width, reference_height:
        Calibrated game resolution.  Frames with the same aspect ratio are
        scaled to it before slots are cut.
    slots:
        One rect per digit slot, left to right, in reference pixel coordinates.
    capture_width, capture_height:
        Size every slot is resized to before it reaches the network.
    alignment:
        Which side the digits hug when the count has fewer digits than slots;
        the other side is filled with blank slots.
    text_colors:
        Inclusive ``(lower, upper)`` HSV boxes matching the HUD text.  When
        given, every slot pixel outside all boxes is blacked out before the
        crop is converted to grayscale.
    """

    reference_width: int
    reference_height: int
    slots: Tuple[BoundingRect, ...]
    capture_width: int
    capture_height: int
    alignment: str = "right"
    text_colors: Tuple[Tuple[HSV, HSV], ...] = ()

    def __post_init__(self) -> None:
        if not self.slots:
            raise ConfigError("DigitLayout needs at least one slot")
        if self.alignment not in ALIGNMENTS:
            raise ConfigError(f"alignment must be one of {ALIGNMENTS}")
        for lower, upper in self.text_colors:
            if len(lower) != 3 or len(upper) != 3:
                raise ConfigError(f"text color range {lower}-{upper} needs two HSV triples")
            if not all(0.0 <= v <= 1.0 for v in (*lower, *upper)):
                raise ConfigError(f"text color range {lower}-{upper} must lie in [0, 1]")
        if self.capture_width <= 0 or self.capture_height <= 0:
            raise ConfigError("capture size must be positive")
        frame = BoundingRect(0, 0, self.reference_width, self.reference_height)
        for idx, slot in enumerate(self.slots):
            if not frame.contains(slot):
                raise ConfigError(f"slot {idx} {slot} lies outside the reference frame")
        lefts = [slot.left for slot in self.slots]
        if lefts != sorted(lefts):
            raise ConfigError("slots must be ordered left to right")

    @property
    def num_slots(self) -> int:
        return len(self.slots)

    @property
    def input_size(self) -> int:
        return self.capture_width * self.capture_height

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "DigitLayout":
        try:
            slots = tuple(BoundingRect(*(int(v) for v in slot)) for slot in data["slots"])  # type: ignore[union-attr]
            sizes = {
                key: int(data[key])  # type: ignore[arg-type]
                for key in (
                    "reference_width",
                    "reference_height",
                    "capture_width",
                    "capture_height",
                )
            }
            text_colors = tuple(
                (
                    tuple(float(v) for v in lower),
                    tuple(float(v) for v in upper),
                )
                for lower, upper in data.get("text_colors", ())  # type: ignore[union-attr]
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid digit layout: {exc}") from exc
        return cls(
            slots=slots,
            alignment=str(data.get("alignment", "right")),
            text_colors=text_colors,  # type: ignore[arg-type]
            **sizes,
        )

    def to_mapping(self) -> dict:
        return {
            "reference_width": self.reference_width,
            "reference_height": self.reference_height,
            "slots": [[s.x, s.y, s.width, s.height] for s in self.slots],
            "capture_width": self.capture_width,
            "capture_height": self.capture_height,
            "alignment": self.alignment,
            "text_colors": [[list(lower), list(upper)] for lower, upper in self.text_colors],
        }


def _default_slots() -> Tuple[BoundingRect, ...]:
    return tuple(BoundingRect(1598 + 17 * idx, 960, 16, 24) for idx in range(3))


# 1080p HUD, three-digit counter in the bottom-right corner.
DEFAULT_LAYOUT = DigitLayout(
    reference_width=1920,
    reference_height=1080,
    slots=_default_slots(),
    capture_width=16,
    capture_height=24,
)


def normalize_digit_image(image: GrayscaleImage) -> GrayscaleImage:
    """Stretch a crop to span ``[0, 1]`` when it has usable contrast."""

    pixels = np.clip(image.pixels, 0.0, 1.0)
    low, high = float(pixels.min()), float(pixels.max())
    if high - low >= MIN_CONTRAST:
        pixels = (pixels - low) / (high - low)
    return GrayscaleImage(image.width, image.height, pixels)


def text_mask(slot_image: RGBImage, layout: DigitLayout) -> BinaryImage:
    """Pixels of ``slot_image`` whose color falls in any of the layout's text boxes."""

    hsv = rgb_to_hsv(slot_image)
    keep = np.zeros((slot_image.height, slot_image.width), dtype=bool)
    for lower, upper in layout.text_colors:
        keep |= hsv_in_range(hsv, lower, upper).pixels
    return BinaryImage(slot_image.width, slot_image.height, keep)


def prepare_digit_image(slot_image: RGBImage, layout: DigitLayout) -> GrayscaleImage:
    if layout.text_colors:
        slot_image = mask_image(slot_image, text_mask(slot_image, layout))
    resized = resize(slot_image, layout.capture_width, layout.capture_height)
    return normalize_digit_image(rgb_to_grayscale(resized))


def scale_to_reference(frame: RGBImage, layout: DigitLayout) -> RGBImage:
    """Resize ``frame`` to the layout's resolution.

    Raises :class:`ConfigError` when the aspect ratios differ, since the slot
    positions would no longer line up with the HUD.
    """

    ref_w, ref_h = layout.reference_width, layout.reference_height
    if (frame.width, frame.height) == (ref_w, ref_h):
        return frame
    if frame.width * ref_h != frame.height * ref_w:
        raise ConfigError(
            f"Frame {frame.width}x{frame.height} does not match the aspect ratio "
            f"of the {ref_w}x{ref_h} layout"
        )
    return resize(frame, ref_w, ref_h)


def extract_digit_images(frame: RGBImage, layout: DigitLayout) -> List[GrayscaleImage]:
    """Return one prepared crop per slot, in left-to-right slot order."""

    frame = scale_to_reference(frame, layout)
    return [prepare_digit_image(crop(frame, slot), layout) for slot in layout.slots]


def digit_inputs(images: Sequence[GrayscaleImage]) -> Array:
    """Stack prepared crops into a ``(slots, width * height)`` input matrix."""

    return np.stack([image.flatten() for image in images], axis=0)


def inputs_to_image(inputs: Array, layout: DigitLayout) -> GrayscaleImage:
    """Inverse of :func:`digit_inputs` for a single row (used for failure dumps)."""

    return GrayscaleImage(layout.capture_width, layout.capture_height, np.clip(inputs, 0.0, 1.0))


__all__ = [
    "DEFAULT_LAYOUT",
    "DigitLayout",
    "digit_inputs",
    "extract_digit_images",
    "inputs_to_image",
    "normalize_digit_image",
    "prepare_digit_image",
    "scale_to_reference",
    "text_mask",
]
