"""Cost functions paired with the classifier's softmax output."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

import numpy as np

from ..core.types import Array

CostFn = Callable[[Array, Array], float]
CostDerivFn = Callable[[Array, Array], Array]

PROBABILITY_FLOOR = 1e-12


@dataclass(frozen=True)
class Cost:
    """Cost wrapper returning the mean cost and dC/d(outputs).

    ``softmax_deriv``, when set, is dC/d(logits) for a cost that directly
    follows a softmax layer.  It replaces the chained softmax Jacobian, which
    loses the gradient once the true class probability underflows.
    """

    name: str
    fn: CostFn
    deriv: CostDerivFn
    softmax_deriv: Optional[CostDerivFn] = None

    def __call__(self, outputs: Array, expected: Array) -> tuple[float, Array]:
        return self.fn(outputs, expected), self.deriv(outputs, expected)


class CostRegistry:
    """Closed lookup of the cost functions a checkpoint may name."""

    def __init__(self) -> None:
        self._registry: Dict[str, Cost] = {}

    def register(
        self,
        name: str,
        fn: CostFn,
        deriv: CostDerivFn,
        softmax_deriv: Optional[CostDerivFn] = None,
    ) -> None:
        self._registry[name] = Cost(name, fn, deriv, softmax_deriv)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def get(self, name: str) -> Cost:
        if name not in self._registry:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown cost {name!r}. Available costs: {available}")
        return self._registry[name]


REGISTRY = CostRegistry()


def _cross_entropy(outputs: Array, expected: Array) -> float:
    probs = np.clip(outputs, PROBABILITY_FLOOR, 1.0)
    return float(-np.mean(np.sum(expected * np.log(probs), axis=1)))


def _cross_entropy_deriv(outputs: Array, expected: Array) -> Array:
    probs = np.clip(outputs, PROBABILITY_FLOOR, 1.0)
    return -(expected / probs) / outputs.shape[0]


def _cross_entropy_softmax_deriv(outputs: Array, expected: Array) -> Array:
    return (outputs - expected) / outputs.shape[0]


def _mse(outputs: Array, expected: Array) -> float:
    return float(np.mean(np.sum(0.5 * np.square(outputs - expected), axis=1)))


def _mse_deriv(outputs: Array, expected: Array) -> Array:
    return (outputs - expected) / outputs.shape[0]


REGISTRY.register(
    "cross_entropy", _cross_entropy, _cross_entropy_deriv, _cross_entropy_softmax_deriv
)
REGISTRY.register("mse", _mse, _mse_deriv)

__all__ = ["Cost", "CostRegistry", "REGISTRY"]
