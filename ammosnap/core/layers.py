"""Layers of the digit classifier.

The layer set is closed: :class:`DenseLayer`, :class:`ActivationLayer` and
:class:`NoiseLayer`.  Every layer exposes ``forward``/``backward`` and a
``kind`` discriminant used when a network is written to a checkpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Mapping, Union

import numpy as np

from ..errors import CheckpointFormatError, ShapeError
from .activations import ACTIVATIONS, elu, elu_deriv, softmax, softmax_backward
from .types import Array


@dataclass(eq=False)
class DenseLayer:
    """Affine transform ``outputs = inputs @ weights.T + biases``.

    The layer only computes gradients; the optimizer owns parameter updates.
    """

    kind: ClassVar[str] = "dense"

    input_size: int
    output_size: int
    seed: int = 0
    weights: Array = field(init=False, repr=False)
    biases: Array = field(init=False, repr=False)
    weight_gradient: Array = field(init=False, repr=False)
    bias_gradient: Array = field(init=False, repr=False)

    def __post_init__(self) -> None:
        rng = np.random.default_rng(self.seed)
        scale = 1.0 / np.sqrt(self.input_size)
        self.weights = rng.standard_normal((self.output_size, self.input_size)) * scale
        self.biases = np.zeros(self.output_size)
        self.weight_gradient = np.zeros_like(self.weights)
        self.bias_gradient = np.zeros_like(self.biases)
        self._inputs: Array | None = None

    def forward(self, inputs: Array, *, training: bool = False) -> Array:
        if inputs.shape[-1] != self.input_size:
            raise ShapeError(
                f"Dense layer expects {self.input_size} inputs, got {inputs.shape[-1]}"
            )
        self._inputs = inputs
        return inputs @ self.weights.T + self.biases

    def backward(self, gradient: Array) -> Array:
        if self._inputs is None:
            raise RuntimeError("backward() called before forward()")
        self.weight_gradient = gradient.T @ self._inputs
        self.bias_gradient = gradient.sum(axis=0)
        return gradient @ self.weights

    def parameters(self) -> Dict[str, Array]:
        return {"weights": self.weights, "biases": self.biases}

    def gradients(self) -> Dict[str, Array]:
        return {"weights": self.weight_gradient, "biases": self.bias_gradient}

    def describe(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "input_size": self.input_size,
            "output_size": self.output_size,
        }

    def load_parameters(self, weights: Array, biases: Array) -> None:
        if weights.shape != self.weights.shape or biases.shape != self.biases.shape:
            raise ShapeError(
                f"Dense parameters {weights.shape}/{biases.shape} do not match "
                f"{self.weights.shape}/{self.biases.shape}"
            )
        self.weights = np.array(weights, dtype=np.float64)
        self.biases = np.array(biases, dtype=np.float64)


@dataclass(eq=False)
class ActivationLayer:
    """Stateless element-wise nonlinearity (``"elu"`` or ``"softmax"``)."""

    kind: ClassVar[str] = "activation"

    function: str

    def __post_init__(self) -> None:
        if self.function not in ACTIVATIONS:
            raise ValueError(f"Unknown activation: {self.function}")
        self._inputs: Array | None = None
        self._outputs: Array | None = None

    def forward(self, inputs: Array, *, training: bool = False) -> Array:
        self._inputs = inputs
        if self.function == "elu":
            self._outputs = elu(inputs)
        else:
            self._outputs = softmax(inputs)
        return self._outputs

    def backward(self, gradient: Array) -> Array:
        if self._inputs is None or self._outputs is None:
            raise RuntimeError("backward() called before forward()")
        if self.function == "elu":
            return gradient * elu_deriv(self._inputs)
        return softmax_backward(self._outputs, gradient)

    def describe(self) -> Dict[str, object]:
        return {"kind": self.kind, "function": self.function}


@dataclass(eq=False)
class NoiseLayer:
    """Training-only input perturbation.

    With per-element ``probability`` the input is shifted by a value drawn from
    ``U(-magnitude, magnitude)``.  Backward passes the gradient through
    unchanged, and outside training the layer is the identity.
    """

    kind: ClassVar[str] = "noise"

    probability: float
    magnitude: float
    seed: int = 123

    def __post_init__(self) -> None:
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError("noise probability must be in [0, 1]")
        self.reset()

    def reset(self) -> None:
        self._rng = np.random.default_rng(self.seed)

    def forward(self, inputs: Array, *, training: bool = False) -> Array:
        if not training or self.probability == 0.0:
            return inputs
        mask = self._rng.random(inputs.shape) < self.probability
        noise = self._rng.uniform(-self.magnitude, self.magnitude, size=inputs.shape)
        return inputs + np.where(mask, noise, 0.0)

    def backward(self, gradient: Array) -> Array:
        return gradient

    def describe(self) -> Dict[str, object]:
        return {
            "kind": self.kind,
            "probability": self.probability,
            "magnitude": self.magnitude,
            "seed": self.seed,
        }


Layer = Union[DenseLayer, ActivationLayer, NoiseLayer]

_LAYER_KINDS = {
    DenseLayer.kind: DenseLayer,
    ActivationLayer.kind: ActivationLayer,
    NoiseLayer.kind: NoiseLayer,
}


def layer_from_description(description: Mapping[str, object]) -> Layer:
    """Rebuild a layer (with fresh parameters) from :meth:`describe` output."""

    kind = description.get("kind")
    if kind not in _LAYER_KINDS:
        raise CheckpointFormatError(f"Unknown layer kind: {kind!r}")
    try:
        if kind == DenseLayer.kind:
            return DenseLayer(
                input_size=int(description["input_size"]),
                output_size=int(description["output_size"]),
            )
        if kind == ActivationLayer.kind:
            return ActivationLayer(function=str(description["function"]))
        return NoiseLayer(
            probability=float(description["probability"]),
            magnitude=float(description["magnitude"]),
            seed=int(description["seed"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CheckpointFormatError(f"Malformed {kind} layer description: {exc}") from exc


__all__ = [
    "ActivationLayer",
    "DenseLayer",
    "Layer",
    "NoiseLayer",
    "layer_from_description",
]
