"""Deterministic mini-batch training loop with periodic checkpoints."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..config import TrainConfig
from ..core.layers import DenseLayer
from ..core.network import NeuralNetwork, shares_parameters
from ..core.types import Array, Dataset
from ..data.utils import iter_minibatches, seed_everything, shuffle_data_points
from ..errors import DataError, IOFailure
from .checkpoints import CheckpointStore
from .metrics import Evaluation, evaluate

L = logging.getLogger("ammosnap.training")


@dataclass
class MomentumSGD:
    """``v = momentum * v - lr * grad; param += v`` for every Dense parameter."""

    learn_rate: float
    momentum: float = 0.9
    _velocity: Dict[DenseLayer, Dict[str, Array]] = field(
        default_factory=dict, init=False, repr=False
    )

    def step(self, network: NeuralNetwork) -> None:
        for layer in network.dense_layers():
            params = layer.parameters()
            velocity = self._velocity.setdefault(
                layer, {name: np.zeros_like(value) for name, value in params.items()}
            )
            for name, grad in layer.gradients().items():
                v = velocity[name]
                v *= self.momentum
                v -= self.learn_rate * grad
                params[name] += v


@dataclass(frozen=True)
class TrainingSummary:
    """What a bounded :meth:`Trainer.run` call did."""

    start_epoch: int
    last_epoch: int
    batches: int
    checkpoints: tuple
    last_evaluation: Optional[Evaluation]


class Trainer:
    """Train the digit classifier until stopped.

    ``training_network`` is ``inference_network`` with the noise layer in
    front; both must share Dense layers so evaluations and checkpoints always
    reflect the latest update.
    """

    def __init__(
        self,
        training_network: NeuralNetwork,
        inference_network: NeuralNetwork,
        optimizer: MomentumSGD,
        config: TrainConfig,
        store: CheckpointStore | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        if not shares_parameters(training_network, inference_network):
            raise ValueError("training and inference networks must share Dense layers")
        self.training_network = training_network
        self.inference_network = inference_network
        self.optimizer = optimizer
        self.config = config
        self.store = store
        self.callbacks = list(callbacks or [])
        self.saved_checkpoints: List[str] = []

    def run(
        self,
        dataset: Dataset,
        *,
        start_epoch: int = 0,
        max_epochs: int | None = None,
    ) -> TrainingSummary:
        """Train from ``start_epoch``; runs forever when ``max_epochs`` is None."""

        batch_size = self.config.batch_size
        if len(dataset.training_data_points) < batch_size:
            raise DataError(
                f"{len(dataset.training_data_points)} training points cannot fill "
                f"one batch of {batch_size}"
            )
        seed_everything(self.config.seed)
        testing = dataset.testing_data_points
        started = time.monotonic()
        total_batches = 0
        last_evaluation: Evaluation | None = None
        epoch = start_epoch
        stop_before = None if max_epochs is None else start_epoch + max_epochs

        while stop_before is None or epoch < stop_before:
            points = list(dataset.training_data_points)
            # Epoch 0 keeps the pre-shuffled dataset order for reproducibility.
            if epoch > 0:
                points = shuffle_data_points(
                    points, np.random.default_rng(self.config.seed + epoch)
                )

            for batch_index, batch in enumerate(iter_minibatches(points, batch_size)):
                self.training_network.compute_gradients(batch)
                self.optimizer.step(self.training_network)
                total_batches += 1

                if batch_index % self.config.evaluate_every_batches == 0:
                    last_evaluation = evaluate(self.inference_network, testing)
                    L.info(
                        "epoch %-3d batch %-3d %8.1fs -> cost %.6f, accuracy with %d test points %.4f",
                        epoch,
                        batch_index,
                        time.monotonic() - started,
                        last_evaluation.cost,
                        last_evaluation.num_points,
                        last_evaluation.accuracy,
                    )
                    self._emit_step(total_batches, epoch, batch_index, last_evaluation)

            if epoch > 0 and epoch % self.config.checkpoint_every_epochs == 0:
                last_evaluation = evaluate(self.inference_network, testing)
                L.info(
                    "epoch end %-3d -> cost %.6f, accuracy with *ALL* test points %.4f",
                    epoch,
                    last_evaluation.cost,
                    last_evaluation.accuracy,
                )
                self._emit_epoch(epoch, last_evaluation)
                self._save_checkpoint(epoch)
            epoch += 1

        return TrainingSummary(
            start_epoch=start_epoch,
            last_epoch=epoch - 1,
            batches=total_batches,
            checkpoints=tuple(self.saved_checkpoints),
            last_evaluation=last_evaluation,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _save_checkpoint(self, epoch: int) -> None:
        if self.store is None:
            return
        try:
            path = self.store.save(self.inference_network, epoch)
        except IOFailure as exc:
            L.error("Skipping checkpoint for epoch %d: %s", epoch, exc)
            return
        self.saved_checkpoints.append(str(path))

    def _emit_step(
        self, step: int, epoch: int, batch_index: int, evaluation: Evaluation
    ) -> None:
        metrics: Dict[str, float] = {"epoch": float(epoch), "batch": float(batch_index)}
        metrics.update(evaluation.as_dict())
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]

    def _emit_epoch(self, epoch: int, evaluation: Evaluation) -> None:
        metrics: Mapping[str, float] = evaluation.as_dict()
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]


__all__ = ["MomentumSGD", "Trainer", "TrainingSummary"]
