"""Utility helpers for dataset preparation and batching."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterator, List, Mapping, Sequence

import numpy as np

from ..core.types import Batch, DataPoint
from ..errors import DataError


def seed_everything(seed: int) -> np.random.Generator:
    """Seed Python and NumPy RNGs and return a generator."""

    random.seed(seed)
    np.random.seed(seed % (2**32 - 1))
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/test partitions."""

    train: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {"train": int(self.train.size), "test": int(self.test.size)}


def deterministic_split(
    n_samples: int,
    *,
    test_fraction: float = 0.2,
    seed: int = 0,
) -> SplitIndices:
    """Return seeded train/test indices with at least one sample in each."""

    if not 0 < test_fraction < 1:
        raise DataError("test_fraction must be in (0, 1)")
    if n_samples < 2:
        raise DataError(f"Need at least two samples to split, got {n_samples}")

    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)

    test_size = int(round(n_samples * test_fraction))
    test_size = min(max(test_size, 1), n_samples - 1)
    return SplitIndices(train=np.sort(indices[test_size:]), test=np.sort(indices[:test_size]))


def shuffle_data_points(
    points: Sequence[DataPoint], rng: np.random.Generator
) -> List[DataPoint]:
    """Return a new list holding a permutation of ``points``."""

    order = rng.permutation(len(points))
    return [points[int(idx)] for idx in order]


def stack_data_points(points: Sequence[DataPoint]) -> Batch:
    if not points:
        raise DataError("Cannot stack an empty list of data points")
    inputs = np.stack([p.inputs for p in points], axis=0)
    targets = np.stack([p.expected_outputs for p in points], axis=0)
    return Batch(inputs=inputs, targets=targets)


def iter_minibatches(points: Sequence[DataPoint], batch_size: int) -> Iterator[Batch]:
    """Yield consecutive full batches; a trailing partial batch is dropped."""

    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    for batch_index in range(len(points) // batch_size):
        start = batch_index * batch_size
        yield stack_data_points(points[start : start + batch_size])


__all__ = [
    "SplitIndices",
    "deterministic_split",
    "iter_minibatches",
    "seed_everything",
    "shuffle_data_points",
    "stack_data_points",
]
