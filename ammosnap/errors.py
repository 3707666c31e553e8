"""Error taxonomy shared across ammosnap."""

from __future__ import annotations


class AmmoSnapError(Exception):
    """Base class for all ammosnap errors."""


class ConfigError(AmmoSnapError, ValueError):
    """Invalid configuration or a frame that does not fit the digit layout."""


class DataError(AmmoSnapError, ValueError):
    """Malformed labels, empty datasets or overlapping train/test splits."""


class ShapeError(AmmoSnapError, ValueError):
    """Layer or input dimensions disagree with the expected architecture."""


class DecodeAmbiguity(AmmoSnapError):
    """A captured counter could not be read with enough confidence.

    Recoverable per frame: the trigger treats it as an unparseable reading.
    """


class IOFailure(AmmoSnapError, OSError):
    """Checkpoint read or write failure."""


class CheckpointFormatError(IOFailure):
    """A checkpoint artifact exists but cannot be interpreted."""


class CheckpointNotFound(IOFailure):
    """No checkpoint matching the requested prefix exists."""


__all__ = [
    "AmmoSnapError",
    "CheckpointFormatError",
    "CheckpointNotFound",
    "ConfigError",
    "DataError",
    "DecodeAmbiguity",
    "IOFailure",
    "ShapeError",
]
