"""Turn a directory of labeled screenshots into a training/testing dataset.

Layout of the directory::

    screenshots/
        26 - streets - bulldog.png     # counter shows 26
        163.png                        # counter shows 163
        _ - breaker.png                # control image, no digits on screen
        manifest.yaml                  # optional

The optional manifest may carry a second label convention and an explicit
holdout::

    labels:
      "163.png": "163"
    test:
      - "26 - streets - bulldog.png"
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
import yaml

from ..core.types import DataPoint, Dataset
from ..errors import ConfigError, DataError
from ..vision.digits import DEFAULT_LAYOUT, DigitLayout, extract_digit_images
from ..vision.image import load_rgb_image
from .labels import digits_to_string, one_hot, parse_expected_digits, slot_labels
from .utils import deterministic_split, shuffle_data_points

L = logging.getLogger("ammosnap.data")

SUPPORTED_EXTS = {".png", ".jpg", ".jpeg", ".bmp"}
MANIFEST_NAMES = ("manifest.yaml", "manifest.yml", "manifest.json")


@dataclass(frozen=True)
class LabeledScreenshot:
    """A screenshot file and the digits its name says the counter shows."""

    path: Path
    digits: Tuple[int, ...]

    @property
    def name(self) -> str:
        return self.path.name


def read_manifest(directory: Path) -> Mapping[str, object]:
    for name in MANIFEST_NAMES:
        path = directory / name
        if not path.exists():
            continue
        text = path.read_text()
        try:
            data = json.loads(text or "{}") if path.suffix == ".json" else yaml.safe_load(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise DataError(f"Malformed manifest {path}: {exc}") from exc
        data = data or {}
        if not isinstance(data, Mapping):
            raise DataError(f"Manifest {path} must decode to a mapping")
        return data
    return {}


def _manifest_digits(value: object, file_name: str) -> Tuple[int, ...]:
    text = str(value).strip()
    if text in {"", "_"}:
        return ()
    if not text.isdigit():
        raise DataError(f"Manifest label {value!r} for {file_name!r} is not a number")
    return tuple(int(ch) for ch in text)


def discover_screenshots(
    directory: Path, manifest: Mapping[str, object] | None = None
) -> List[LabeledScreenshot]:
    """List labeled screenshots in ``directory`` sorted by file name."""

    manifest = manifest or {}
    manifest_labels = dict(manifest.get("labels") or {})  # type: ignore[arg-type]
    shots: List[LabeledScreenshot] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() not in SUPPORTED_EXTS:
            continue
        digits = parse_expected_digits(path.name)
        if path.name in manifest_labels:
            listed = _manifest_digits(manifest_labels.pop(path.name), path.name)
            if listed != digits:
                raise DataError(
                    f"Label conventions disagree for {path.name!r}: file name says "
                    f"{digits_to_string(digits)}, manifest says {digits_to_string(listed)}"
                )
        shots.append(LabeledScreenshot(path=path, digits=digits))
    if manifest_labels:
        raise DataError(f"Manifest labels reference missing files: {sorted(manifest_labels)}")
    return shots


def screenshot_data_points(shot: LabeledScreenshot, layout: DigitLayout) -> List[DataPoint]:
    """One data point per digit slot of ``shot``."""

    labels = slot_labels(shot.digits, layout.num_slots, layout.alignment)
    try:
        frame = load_rgb_image(shot.path)
        crops = extract_digit_images(frame, layout)
    except ConfigError as exc:
        raise DataError(f"{shot.name}: {exc}") from exc
    except OSError as exc:
        raise DataError(f"Cannot read screenshot {shot.path}: {exc}") from exc
    return [
        DataPoint(inputs=image.flatten(), expected_outputs=one_hot(label), source=shot.name)
        for image, label in zip(crops, labels)
    ]


def _split_screenshots(
    shots: Sequence[LabeledScreenshot],
    manifest: Mapping[str, object],
    test_fraction: float,
    seed: int,
) -> Tuple[List[LabeledScreenshot], List[LabeledScreenshot], str]:
    listed = manifest.get("test")
    if listed:
        test_names = {str(name) for name in listed}  # type: ignore[union-attr]
        known = {shot.name for shot in shots}
        missing = test_names - known
        if missing:
            raise DataError(f"Manifest test split references missing files: {sorted(missing)}")
        train = [shot for shot in shots if shot.name not in test_names]
        test = [shot for shot in shots if shot.name in test_names]
        return train, test, "manifest"
    split = deterministic_split(len(shots), test_fraction=test_fraction, seed=seed)
    train = [shots[int(i)] for i in split.train]
    test = [shots[int(i)] for i in split.test]
    return train, test, "seeded"


def load_dataset(
    directory: str | Path,
    layout: DigitLayout = DEFAULT_LAYOUT,
    *,
    test_fraction: float = 0.2,
    seed: int = 0,
) -> Dataset:
    """Build a :class:`Dataset` from ``directory``.

    Nothing is returned unless every screenshot parsed; the training points
    come back pre-shuffled with ``seed`` so the first epoch is reproducible.
    """

    directory = Path(directory)
    if not directory.is_dir():
        raise DataError(f"Screenshot directory not found: {directory}")
    manifest = read_manifest(directory)
    shots = discover_screenshots(directory, manifest)
    if not shots:
        raise DataError(f"No labeled screenshots in {directory}")

    train_shots, test_shots, split_mode = _split_screenshots(
        shots, manifest, test_fraction, seed
    )
    points_by_name: Dict[str, List[DataPoint]] = {}
    for shot in shots:
        L.debug("Preparing %s (digits=%s)", shot.name, digits_to_string(shot.digits))
        points_by_name[shot.name] = screenshot_data_points(shot, layout)

    training = [p for shot in train_shots for p in points_by_name[shot.name]]
    testing = [p for shot in test_shots for p in points_by_name[shot.name]]
    training = shuffle_data_points(training, np.random.default_rng(seed))

    provenance = {
        "directory": str(directory),
        "screenshots": len(shots),
        "train_screenshots": len(train_shots),
        "test_screenshots": len(test_shots),
        "split": split_mode,
        "seed": seed,
        "layout": layout.to_mapping(),
    }
    dataset = Dataset(
        training_data_points=tuple(training),
        testing_data_points=tuple(testing),
        provenance=provenance,
    )
    L.info(
        "Loaded %d training and %d testing points from %d screenshots",
        len(dataset.training_data_points),
        len(dataset.testing_data_points),
        len(shots),
    )
    return dataset


__all__ = [
    "LabeledScreenshot",
    "discover_screenshots",
    "load_dataset",
    "read_manifest",
    "screenshot_data_points",
]
