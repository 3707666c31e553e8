"""Core typing contracts for ammosnap."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np

from ..errors import DataError

Array = np.ndarray


@dataclass(frozen=True)
class Batch:
    """A single mini-batch of data."""

    inputs: Array
    targets: Array

    def __len__(self) -> int:
        return int(self.inputs.shape[0])


@dataclass(frozen=True, eq=False)
class DataPoint:
    """One flattened digit crop and its one-hot expected label."""

    inputs: Array
    expected_outputs: Array
    source: str = ""

    def __post_init__(self) -> None:
        expected = np.asarray(self.expected_outputs)
        if expected.ndim != 1:
            raise DataError("expected_outputs must be a vector")
        hot = np.count_nonzero(expected == 1.0)
        if hot != 1 or np.count_nonzero(expected) != 1:
            raise DataError(
                f"expected_outputs must be one-hot, got {expected.tolist()} ({self.source})"
            )
        if np.asarray(self.inputs).ndim != 1:
            raise DataError("inputs must be a flattened vector")


@dataclass(frozen=True)
class Dataset:
    """Disjoint training and testing data points for one training run."""

    training_data_points: Tuple[DataPoint, ...]
    testing_data_points: Tuple[DataPoint, ...]
    provenance: Dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.training_data_points:
            raise DataError("Dataset has no training data points")
        if not self.testing_data_points:
            raise DataError("Dataset has no testing data points")
        train_sources = {p.source for p in self.training_data_points}
        test_sources = {p.source for p in self.testing_data_points}
        overlap = (train_sources & test_sources) - {""}
        if overlap:
            raise DataError(f"Train/test overlap: {sorted(overlap)}")

    @property
    def input_size(self) -> int:
        return int(self.training_data_points[0].inputs.shape[0])

    @property
    def output_size(self) -> int:
        return int(self.training_data_points[0].expected_outputs.shape[0])


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`ammosnap.training.pipelines.run_training`."""

    epochs: int
    last_epoch: int
    checkpoints: Tuple[str, ...]
    metrics_path: str
    manifest_path: str
