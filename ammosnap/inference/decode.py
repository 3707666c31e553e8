"""Read the ammo count from per-slot digit predictions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..core.network import NeuralNetwork
from ..data.labels import DigitLabel
from ..errors import DecodeAmbiguity, ShapeError
from ..vision.digits import digit_inputs
from ..vision.image import GrayscaleImage


@dataclass(frozen=True)
class SlotReading:
    label: DigitLabel
    confidence: float


def read_slots(network: NeuralNetwork, digit_crops: Sequence[GrayscaleImage]) -> List[SlotReading]:
    """Most likely label per slot; ties go to the lowest label index."""

    if not digit_crops:
        raise ShapeError("No digit crops to read")
    inputs = digit_inputs(digit_crops)
    if inputs.shape[1] != network.input_size:
        raise ShapeError(
            f"Digit crops have {inputs.shape[1]} pixels, network expects {network.input_size}"
        )
    outputs = network.predict(inputs)
    best = np.argmax(outputs, axis=1)
    return [
        SlotReading(label=DigitLabel(int(idx)), confidence=float(outputs[row, idx]))
        for row, idx in enumerate(best)
    ]


def readings_to_string(readings: Sequence[SlotReading]) -> str:
    return "".join(reading.label.to_char() for reading in readings)


def decode_readings(readings: Sequence[SlotReading], *, min_confidence: float = 0.0) -> int:
    """Join slot readings into one integer.

    Blank slots may only pad the start or end of the counter.  Raises
    :class:`DecodeAmbiguity` for a low-confidence slot, an interior blank, or a
    counter with no digits at all.
    """

    shown = readings_to_string(readings)
    for idx, reading in enumerate(readings):
        if reading.confidence < min_confidence:
            raise DecodeAmbiguity(
                f"Slot {idx} read as {reading.label.to_char()!r} with confidence "
                f"{reading.confidence:.3f} < {min_confidence:.3f} ({shown})"
            )
    digits = shown.strip("_")
    if not digits:
        raise DecodeAmbiguity("No digits visible in the counter")
    if "_" in digits:
        raise DecodeAmbiguity(f"Blank digit found in the middle of the counter ({shown})")
    return int(digits)


def decode(
    network: NeuralNetwork,
    digit_crops: Sequence[GrayscaleImage],
    *,
    min_confidence: float = 0.0,
) -> int:
    """Run the inference network on every slot crop and decode the count."""

    return decode_readings(read_slots(network, digit_crops), min_confidence=min_confidence)


__all__ = ["SlotReading", "decode", "decode_readings", "read_slots", "readings_to_string"]
