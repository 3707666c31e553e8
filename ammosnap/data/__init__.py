"""Labeled screenshot datasets."""

from .labels import NUM_LABELS, DigitLabel
from .prepare import load_dataset

__all__ = ["DigitLabel", "NUM_LABELS", "load_dataset"]
