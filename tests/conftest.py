from pathlib import Path

import numpy as np
import pytest
import yaml

from ammosnap.vision.digits import DigitLayout
from ammosnap.vision.geometry import BoundingRect
from ammosnap.vision.image import RGBImage, save_image

BACKGROUND = (0.08, 0.08, 0.12)
FOREGROUND = (0.95, 0.9, 0.75)

# (row slice, col slice) of each segment on a 16x24 glyph
_SEGMENTS = {
    "a": (slice(2, 5), slice(4, 12)),
    "b": (slice(3, 12), slice(11, 14)),
    "c": (slice(12, 21), slice(11, 14)),
    "d": (slice(19, 22), slice(4, 12)),
    "e": (slice(12, 21), slice(2, 5)),
    "f": (slice(3, 12), slice(2, 5)),
    "g": (slice(10, 13), slice(4, 12)),
}
_DIGIT_SEGMENTS = {
    0: "abcdef",
    1: "bc",
    2: "abged",
    3: "abgcd",
    4: "fgbc",
    5: "afgcd",
    6: "afgedc",
    7: "abc",
    8: "abcdefg",
    9: "abcdfg",
}


def glyph(digit):
    """16x24 boolean mask for ``digit``; ``None`` gives an empty slot."""

    mask = np.zeros((24, 16), dtype=bool)
    if digit is not None:
        for segment in _DIGIT_SEGMENTS[digit]:
            mask[_SEGMENTS[segment]] = True
    return mask


def render_frame(layout, digits, *, background=BACKGROUND, foreground=FOREGROUND):
    """Full frame with ``digits`` drawn right-aligned into the layout's slots."""

    pixels = np.empty((layout.reference_height, layout.reference_width, 3))
    pixels[...] = background
    shown = [None] * (layout.num_slots - len(digits)) + list(digits)
    for slot, digit in zip(layout.slots, shown):
        region = pixels[slot.top : slot.bottom, slot.left : slot.right]
        region[glyph(digit)] = foreground
    return RGBImage.from_array(pixels)


def write_screenshots(directory, layout, names, *, test=(), **colors):
    """Write one frame per file name (digits parsed from the name) plus a manifest."""

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        prefix = name.split(" ", 1)[0]
        digits = [] if prefix.startswith("_") else [int(ch) for ch in prefix]
        save_image(render_frame(layout, digits, **colors), directory / name)
    if test:
        (directory / "manifest.yaml").write_text(yaml.safe_dump({"test": list(test)}))
    return directory


@pytest.fixture
def one_slot_layout():
    return DigitLayout(
        reference_width=32,
        reference_height=32,
        slots=(BoundingRect(8, 4, 16, 24),),
        capture_width=16,
        capture_height=24,
    )


@pytest.fixture
def three_slot_layout():
    return DigitLayout(
        reference_width=64,
        reference_height=32,
        slots=tuple(BoundingRect(6 + 17 * idx, 4, 16, 24) for idx in range(3)),
        capture_width=16,
        capture_height=24,
    )


@pytest.fixture
def digit_screenshots(tmp_path, one_slot_layout):
    """Every label once in train ("a") and once in test ("b")."""

    labels = [str(d) for d in range(10)] + ["_"]
    train = [f"{label} - a.png" for label in labels]
    test = [f"{label} - b.png" for label in labels]
    directory = tmp_path / "screenshots"
    write_screenshots(directory, one_slot_layout, train)
    write_screenshots(
        directory,
        one_slot_layout,
        test,
        test=test,
        background=(0.1, 0.06, 0.1),
        foreground=(0.9, 0.92, 0.7),
    )
    return directory


def smoke_config(data_dir, layout, run_root, **train_overrides):
    """Config mapping for a small, noise-free run."""

    train = {
        "batch_size": 5,
        "learn_rate": 0.05,
        "momentum": 0.9,
        "evaluate_every_batches": 1,
        "checkpoint_every_epochs": 100,
        "seed": 0,
        "checkpoint_dir": str(Path(run_root) / "checkpoints"),
        "run_dir": str(Path(run_root) / "run"),
        "enable_plots": False,
    }
    train.update(train_overrides)
    return {
        "data": {"directory": str(data_dir), "seed": 0, "layout": layout.to_mapping()},
        "model": {
            "hidden_sizes": [32],
            "noise_probability": 0.0,
            "noise_magnitude": 0.0,
            "init_seed": 0,
        },
        "train": train,
        "inference": {"min_confidence": 0.0},
    }


@pytest.fixture
def render():
    return render_frame


@pytest.fixture
def screenshot_writer():
    return write_screenshots


@pytest.fixture
def make_config():
    return smoke_config
