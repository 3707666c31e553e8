from pathlib import Path

import pytest

from ammosnap.config import RunConfig
from ammosnap.data.prepare import load_dataset
from ammosnap.inference.trigger import TriggerOutcome
from ammosnap.training import pipelines
from ammosnap.training.metrics import evaluate
from ammosnap.vision.image import load_rgb_image


@pytest.fixture
def trained(tmp_path, digit_screenshots, one_slot_layout, make_config):
    config = RunConfig.from_mapping(
        make_config(digit_screenshots, one_slot_layout, tmp_path, evaluate_every_batches=10)
    )
    result = pipelines.run_training(config, max_epochs=301)
    return config, result


def test_trained_network_reads_every_label(trained, digit_screenshots, one_slot_layout):
    config, result = trained
    assert result.last_epoch == 300
    assert [Path(p).name for p in result.checkpoints] == [
        f"neural_network_checkpoint_epoch_{epoch}.npz" for epoch in (100, 200, 300)
    ]
    network = pipelines.load_inference_network(config)
    dataset = load_dataset(digit_screenshots, one_slot_layout)
    assert evaluate(network, dataset.testing_data_points).accuracy == 1.0
    assert pipelines.evaluate_failures(config) == []


def test_trigger_fires_on_decrease(trained, digit_screenshots, one_slot_layout, render):
    config, _ = trained
    trigger = pipelines.build_trigger(config)
    frames = [
        load_rgb_image(digit_screenshots / "7 - b.png"),
        render(one_slot_layout, [7]),
        render(one_slot_layout, [5]),
        render(one_slot_layout, []),
        render(one_slot_layout, [3]),
        render(one_slot_layout, [9]),
    ]
    outcomes = [trigger.observe(frame) for frame in frames]
    assert outcomes == [
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.DECREASED,
        TriggerOutcome.NO_CHANGE,
        TriggerOutcome.DECREASED,
        TriggerOutcome.INCREASED,
    ]
    assert trigger.state.last_decoded_count == 9
    assert trigger.should_capture(render(one_slot_layout, [8]))
    assert not trigger.should_capture(render(one_slot_layout, [8]))


def test_resume_continues_after_latest_checkpoint(trained):
    config, _ = trained
    result = pipelines.run_training(config, resume=True, max_epochs=1)
    assert (result.epochs, result.last_epoch) == (1, 301)


def test_failing_points_export(tmp_path, digit_screenshots, one_slot_layout, make_config):
    config = RunConfig.from_mapping(
        make_config(digit_screenshots, one_slot_layout, tmp_path, checkpoint_every_epochs=1)
    )
    pipelines.run_training(config, max_epochs=2)
    failures = pipelines.evaluate_failures(config, export_dir=tmp_path / "failures")
    exported = sorted((tmp_path / "failures").glob("*.png")) if failures else []
    assert len(exported) == len(failures)
    for failure in failures:
        assert failure.expected != failure.predicted
        assert failure.source.endswith(" - b.png")
