"""Digit labels and the screenshot file naming convention."""

from __future__ import annotations

import re
from enum import IntEnum
from pathlib import Path
from typing import List, Sequence, Tuple

import numpy as np

from ..core.types import Array
from ..errors import DataError


class DigitLabel(IntEnum):
    ZERO = 0
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    BLANK = 10

    @property
    def is_digit(self) -> bool:
        return self is not DigitLabel.BLANK

    def to_char(self) -> str:
        return str(int(self)) if self.is_digit else "_"


NUM_LABELS = len(DigitLabel)


def parse_expected_digits(file_name: str) -> Tuple[int, ...]:
    """Digits shown on the counter according to ``file_name``.

    The digits run up to the first space or dot: ``"26 - streets.png"`` ->
    ``(2, 6)``, ``"163.png"`` -> ``(1, 6, 3)``, ``"26.5 - x.png"`` -> ``(2, 6)``.
    A leading underscore (``"_ - streets.png"``) marks a control image with
    no digits on screen.
    """

    name = Path(file_name).name
    if name.startswith("_"):
        return ()
    prefix = re.split(r"[ .]", name, maxsplit=1)[0]
    if not prefix or not prefix.isdigit() or not prefix.isascii():
        raise DataError(f"Cannot parse expected digits from file name {file_name!r}")
    return tuple(int(ch) for ch in prefix)


def digits_to_string(digits: Sequence[int]) -> str:
    return "".join(str(d) for d in digits) or "_"


def slot_labels(digits: Sequence[int], num_slots: int, alignment: str = "right") -> List[DigitLabel]:
    """Spread ``digits`` over ``num_slots``, padding the free side with BLANK."""

    if len(digits) > num_slots:
        raise DataError(f"{len(digits)} digits do not fit in {num_slots} slots")
    labels = [DigitLabel(d) for d in digits]
    padding = [DigitLabel.BLANK] * (num_slots - len(labels))
    if alignment == "right":
        return padding + labels
    return labels + padding


def one_hot(label: DigitLabel | int, num_labels: int = NUM_LABELS) -> Array:
    vector = np.zeros(num_labels, dtype=np.float64)
    vector[int(label)] = 1.0
    return vector


def label_from_one_hot(vector: Array) -> DigitLabel:
    vector = np.asarray(vector)
    hot = np.flatnonzero(vector == 1.0)
    if hot.size != 1 or np.count_nonzero(vector) != 1:
        raise DataError(f"Not a one-hot vector: {vector.tolist()}")
    return DigitLabel(int(hot[0]))


__all__ = [
    "DigitLabel",
    "NUM_LABELS",
    "digits_to_string",
    "label_from_one_hot",
    "one_hot",
    "parse_expected_digits",
    "slot_labels",
]
