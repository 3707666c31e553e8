"""Layer pipelines composed into a trainable classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Sequence, Tuple

import numpy as np

from ..errors import ShapeError
from ..training.losses import REGISTRY as COST_REGISTRY
from ..training.losses import Cost
from .layers import ActivationLayer, DenseLayer, Layer, NoiseLayer
from .types import Array, Batch


class NeuralNetwork:
    """An ordered sequence of layers plus one cost function.

    Networks built with :meth:`with_leading_layers` reuse the very same layer
    objects, so a training network and its inference network always see the
    same Dense parameters.
    """

    def __init__(self, layers: Sequence[Layer], cost: str = "cross_entropy") -> None:
        if not layers:
            raise ValueError("A network needs at least one layer")
        self.layers: Tuple[Layer, ...] = tuple(layers)
        self.cost_function: Cost = COST_REGISTRY.get(cost)

    def forward(self, inputs: Array, *, training: bool = False) -> Array:
        outputs = np.atleast_2d(np.asarray(inputs, dtype=np.float64))
        for layer in self.layers:
            outputs = layer.forward(outputs, training=training)
        return outputs

    def predict(self, inputs: Array) -> Array:
        return self.forward(inputs, training=False)

    def backward(self, cost_gradient: Array) -> Array:
        gradient = cost_gradient
        for layer in reversed(self.layers):
            gradient = layer.backward(gradient)
        return gradient

    def compute_gradients(self, batch: Batch) -> float:
        """Run forward/backward on ``batch`` leaving gradients on the Dense layers.

        A trailing softmax is folded into the cost when the cost provides a
        gradient with respect to the logits.
        """

        outputs = self.forward(batch.inputs, training=True)
        cost = self.cost_function.fn(outputs, batch.targets)
        if self._ends_in_softmax() and self.cost_function.softmax_deriv is not None:
            gradient = self.cost_function.softmax_deriv(outputs, batch.targets)
            for layer in reversed(self.layers[:-1]):
                gradient = layer.backward(gradient)
        else:
            self.backward(self.cost_function.deriv(outputs, batch.targets))
        return cost

    def _ends_in_softmax(self) -> bool:
        last = self.layers[-1]
        return isinstance(last, ActivationLayer) and last.function == "softmax"

    def cost(self, inputs: Array, expected: Array) -> float:
        return self.cost_function.fn(self.predict(inputs), expected)

    def accuracy(self, inputs: Array, expected: Array) -> float:
        predicted = np.argmax(self.predict(inputs), axis=1)
        return float(np.mean(predicted == np.argmax(expected, axis=1)))

    def dense_layers(self) -> List[DenseLayer]:
        return [layer for layer in self.layers if isinstance(layer, DenseLayer)]

    def with_leading_layers(self, leading: Sequence[Layer]) -> "NeuralNetwork":
        """Return a network running ``leading`` first, sharing this network's layers."""

        return NeuralNetwork([*leading, *self.layers], cost=self.cost_function.name)

    def without_noise(self) -> "NeuralNetwork":
        return NeuralNetwork(
            [layer for layer in self.layers if not isinstance(layer, NoiseLayer)],
            cost=self.cost_function.name,
        )

    def describe(self) -> List[Mapping[str, object]]:
        return [layer.describe() for layer in self.layers]

    def parameter_count(self) -> int:
        return int(sum(d.weights.size + d.biases.size for d in self.dense_layers()))

    @property
    def input_size(self) -> int:
        return self.dense_layers()[0].input_size

    @property
    def output_size(self) -> int:
        return self.dense_layers()[-1].output_size


def shares_parameters(first: NeuralNetwork, second: NeuralNetwork) -> bool:
    """True when both networks hold identical Dense layer objects, in order."""

    a, b = first.dense_layers(), second.dense_layers()
    return len(a) == len(b) and all(x is y for x, y in zip(a, b))


@dataclass(frozen=True)
class NetworkArchitecture:
    """Shape of the inference network: Dense/ELU blocks then Dense/softmax."""

    input_size: int
    hidden_sizes: Tuple[int, ...] = (100,)
    output_size: int = 11
    cost: str = "cross_entropy"

    def layer_dims(self) -> List[int]:
        return [self.input_size, *self.hidden_sizes, self.output_size]

    def build(self, seed: int = 0) -> NeuralNetwork:
        dims = self.layer_dims()
        layers: List[Layer] = []
        for idx, (in_dim, out_dim) in enumerate(zip(dims[:-1], dims[1:])):
            layers.append(DenseLayer(in_dim, out_dim, seed=seed + idx))
            last = idx == len(dims) - 2
            layers.append(ActivationLayer("softmax" if last else "elu"))
        return NeuralNetwork(layers, cost=self.cost)

    def validate(self, network: NeuralNetwork) -> None:
        """Raise :class:`ShapeError` if ``network`` does not have this shape."""

        expected = self.build().describe()
        actual = [d for d in network.describe() if d["kind"] != NoiseLayer.kind]
        if len(expected) != len(actual):
            raise ShapeError(
                f"Expected {len(expected)} layers, checkpoint has {len(actual)}"
            )
        for idx, (want, got) in enumerate(zip(expected, actual)):
            if dict(want) != dict(got):
                raise ShapeError(f"Layer {idx} mismatch: expected {want}, found {got}")


__all__ = ["NetworkArchitecture", "NeuralNetwork", "shares_parameters"]
