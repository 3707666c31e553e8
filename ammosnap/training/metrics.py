"""Evaluation helpers for the digit classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Sequence

import numpy as np

from ..core.network import NeuralNetwork
from ..core.types import DataPoint
from ..data.labels import DigitLabel
from ..data.utils import stack_data_points


@dataclass(frozen=True)
class Evaluation:
    cost: float
    accuracy: float
    num_points: int

    def as_dict(self) -> Mapping[str, float]:
        return {
            "cost": float(self.cost),
            "accuracy": float(self.accuracy),
            "num_points": float(self.num_points),
        }


@dataclass(frozen=True)
class FailingPoint:
    """A test point the network gets wrong."""

    index: int
    source: str
    expected: DigitLabel
    predicted: DigitLabel
    confidence: float
    inputs: np.ndarray


def evaluate(network: NeuralNetwork, points: Sequence[DataPoint]) -> Evaluation:
    """Cost and accuracy of ``network`` over every point."""

    batch = stack_data_points(points)
    outputs = network.predict(batch.inputs)
    cost = network.cost_function.fn(outputs, batch.targets)
    accuracy = float(np.mean(np.argmax(outputs, axis=1) == np.argmax(batch.targets, axis=1)))
    return Evaluation(cost=cost, accuracy=accuracy, num_points=len(points))


def find_failing_points(
    network: NeuralNetwork, points: Sequence[DataPoint]
) -> List[FailingPoint]:
    batch = stack_data_points(points)
    outputs = network.predict(batch.inputs)
    predicted = np.argmax(outputs, axis=1)
    expected = np.argmax(batch.targets, axis=1)
    failures = []
    for idx in np.flatnonzero(predicted != expected):
        failures.append(
            FailingPoint(
                index=int(idx),
                source=points[idx].source,
                expected=DigitLabel(int(expected[idx])),
                predicted=DigitLabel(int(predicted[idx])),
                confidence=float(outputs[idx, predicted[idx]]),
                inputs=points[idx].inputs,
            )
        )
    return failures


__all__ = ["Evaluation", "FailingPoint", "evaluate", "find_failing_points"]
