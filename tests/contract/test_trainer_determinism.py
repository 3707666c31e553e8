import logging

import numpy as np
import pytest

from ammosnap.config import TrainConfig
from ammosnap.core.layers import NoiseLayer
from ammosnap.core.network import NetworkArchitecture
from ammosnap.data.prepare import load_dataset
from ammosnap.errors import DataError
from ammosnap.training.checkpoints import CheckpointStore
from ammosnap.training.trainer import MomentumSGD, Trainer


class _Recorder:
    def __init__(self):
        self.steps = []
        self.epochs = []

    def on_step(self, step, metrics):
        self.steps.append((step, dict(metrics)))

    def on_epoch(self, epoch, metrics):
        self.epochs.append((epoch, dict(metrics)))


def _trainer(layout, config, store=None, callbacks=None):
    inference = NetworkArchitecture(input_size=layout.input_size, hidden_sizes=(8,)).build()
    training = inference.with_leading_layers([NoiseLayer(0.01, 0.75, seed=123)])
    optimizer = MomentumSGD(config.learn_rate, config.momentum)
    return Trainer(training, inference, optimizer, config, store=store, callbacks=callbacks)


@pytest.fixture
def dataset(digit_screenshots, one_slot_layout):
    return load_dataset(digit_screenshots, one_slot_layout)


def test_training_is_deterministic(dataset, one_slot_layout):
    config = TrainConfig(batch_size=5, evaluate_every_batches=1, checkpoint_every_epochs=50)
    first = _trainer(one_slot_layout, config)
    second = _trainer(one_slot_layout, config)
    first.run(dataset, max_epochs=4)
    second.run(dataset, max_epochs=4)
    for a, b in zip(first.inference_network.dense_layers(), second.inference_network.dense_layers()):
        assert np.array_equal(a.weights, b.weights)
        assert np.array_equal(a.biases, b.biases)


def test_updates_reach_the_inference_network(dataset, one_slot_layout):
    config = TrainConfig(batch_size=5, evaluate_every_batches=1)
    trainer = _trainer(one_slot_layout, config)
    before = trainer.inference_network.dense_layers()[0].weights.copy()
    summary = trainer.run(dataset, max_epochs=1)
    assert summary.batches == 2
    assert not np.array_equal(before, trainer.inference_network.dense_layers()[0].weights)


def test_networks_must_share_parameters(one_slot_layout):
    architecture = NetworkArchitecture(input_size=one_slot_layout.input_size, hidden_sizes=(8,))
    with pytest.raises(ValueError):
        Trainer(architecture.build(), architecture.build(), MomentumSGD(0.05), TrainConfig())


def test_batch_larger_than_training_set(dataset, one_slot_layout):
    trainer = _trainer(one_slot_layout, TrainConfig(batch_size=100))
    with pytest.raises(DataError):
        trainer.run(dataset, max_epochs=1)


def test_checkpoints_and_callbacks_follow_the_schedule(tmp_path, dataset, one_slot_layout):
    recorder = _Recorder()
    store = CheckpointStore(tmp_path / "ckpt")
    config = TrainConfig(batch_size=5, evaluate_every_batches=1, checkpoint_every_epochs=2)
    summary = _trainer(one_slot_layout, config, store, [recorder]).run(dataset, max_epochs=5)

    assert summary.last_epoch == 4
    assert [info.epoch_index for info in store.list_checkpoints()] == [2, 4]
    assert len(summary.checkpoints) == 2
    assert [epoch for epoch, _ in recorder.epochs] == [2, 4]
    assert len(recorder.steps) == 10
    step, metrics = recorder.steps[-1]
    assert step == 10
    assert metrics["epoch"] == 4.0
    assert {"cost", "accuracy", "num_points", "batch"} <= set(metrics)
    assert metrics["num_points"] == float(len(dataset.testing_data_points))


def test_resumed_run_continues_epoch_numbering(tmp_path, dataset, one_slot_layout):
    store = CheckpointStore(tmp_path / "ckpt")
    config = TrainConfig(batch_size=5, evaluate_every_batches=2, checkpoint_every_epochs=3)
    summary = _trainer(one_slot_layout, config, store).run(dataset, start_epoch=5, max_epochs=2)
    assert (summary.start_epoch, summary.last_epoch) == (5, 6)
    assert [info.epoch_index for info in store.list_checkpoints()] == [6]


def test_failed_save_is_logged_and_training_continues(tmp_path, dataset, one_slot_layout, caplog):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    config = TrainConfig(batch_size=5, evaluate_every_batches=1, checkpoint_every_epochs=1)
    trainer = _trainer(one_slot_layout, config, CheckpointStore(blocker))
    with caplog.at_level(logging.ERROR, logger="ammosnap.training"):
        summary = trainer.run(dataset, max_epochs=3)
    assert summary.last_epoch == 2
    assert summary.checkpoints == ()
    assert sum("Skipping checkpoint" in r.getMessage() for r in caplog.records) == 2
