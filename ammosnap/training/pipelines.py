"""Run assembly: dataset, networks, checkpoint store, trainer and sinks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from ..config import RunConfig
from ..core.layers import NoiseLayer
from ..core.network import NetworkArchitecture, NeuralNetwork
from ..core.types import RunResult
from ..data.labels import NUM_LABELS
from ..data.prepare import load_dataset
from ..errors import CheckpointNotFound
from ..inference.trigger import AmmoTrigger
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..vision.digits import DEFAULT_LAYOUT, DigitLayout, inputs_to_image
from ..vision.image import save_image
from .checkpoints import CheckpointStore, load_checkpoint, resume_from_latest
from .metrics import FailingPoint, find_failing_points
from .trainer import MomentumSGD, Trainer

L = logging.getLogger("ammosnap.pipelines")


def resolve_layout(config: RunConfig) -> DigitLayout:
    if config.data.layout is None:
        return DEFAULT_LAYOUT
    return DigitLayout.from_mapping(config.data.layout)


def build_architecture(config: RunConfig, layout: DigitLayout) -> NetworkArchitecture:
    return NetworkArchitecture(
        input_size=layout.input_size,
        hidden_sizes=config.model.hidden_sizes,
        output_size=NUM_LABELS,
    )


def build_networks(
    config: RunConfig,
    architecture: NetworkArchitecture,
    inference: NeuralNetwork | None = None,
) -> Tuple[NeuralNetwork, NeuralNetwork]:
    """Return ``(inference, training)``; training adds the noise layer in front."""

    if inference is None:
        inference = architecture.build(seed=config.model.init_seed)
    noise = NoiseLayer(
        probability=config.model.noise_probability,
        magnitude=config.model.noise_magnitude,
        seed=config.model.noise_seed,
    )
    return inference, inference.with_leading_layers([noise])


def checkpoint_store(config: RunConfig) -> CheckpointStore:
    return CheckpointStore(config.train.checkpoint_dir, prefix=config.train.checkpoint_prefix)


def run_training(
    config: RunConfig,
    *,
    resume: bool = False,
    max_epochs: int | None = None,
) -> RunResult:
    """Train the digit classifier, cold or from the newest checkpoint.

    Runs until interrupted when ``max_epochs`` is None.  A failed load while
    resuming is fatal; a failed periodic save is only logged by the trainer.
    """

    layout = resolve_layout(config)
    dataset = load_dataset(
        config.data.directory,
        layout,
        test_fraction=config.data.test_fraction,
        seed=config.data.seed,
    )
    architecture = build_architecture(config, layout)
    store = checkpoint_store(config)

    start_epoch = 0
    loaded = None
    if resume:
        loaded, start_epoch = resume_from_latest(store, architecture)
    inference, training = build_networks(config, architecture, loaded)

    run_dir = Path(config.train.run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    _print_startup_summary(
        data_dir=config.data.directory,
        layout=layout,
        dims=architecture.layer_dims(),
        train_points=len(dataset.training_data_points),
        test_points=len(dataset.testing_data_points),
        param_count=inference.parameter_count(),
        start_epoch=start_epoch,
        checkpoint_dir=str(store.directory),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="test", seed=config.train.seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="test")
    plots = PlotAdapter(run_dir, enable_plots=config.train.enable_plots)
    trainer = Trainer(
        training_network=training,
        inference_network=inference,
        optimizer=MomentumSGD(config.train.learn_rate, config.train.momentum),
        config=config.train,
        store=store,
        callbacks=[jsonl, csv_sink, plots],
    )

    try:
        summary = trainer.run(dataset, start_epoch=start_epoch, max_epochs=max_epochs)
    finally:
        plots.close()

    manifest = write_manifest(
        run_dir / "manifest.json",
        config=config.to_mapping(),
        dataset_provenance=dataset.provenance,
        extra={
            "start_epoch": summary.start_epoch,
            "last_epoch": summary.last_epoch,
            "checkpoints": list(summary.checkpoints),
        },
    )
    return RunResult(
        epochs=summary.last_epoch - summary.start_epoch + 1,
        last_epoch=summary.last_epoch,
        checkpoints=summary.checkpoints,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
    )


def load_inference_network(config: RunConfig, layout: DigitLayout | None = None) -> NeuralNetwork:
    """Load ``inference.checkpoint`` or, when unset, the newest checkpoint."""

    layout = layout or resolve_layout(config)
    architecture = build_architecture(config, layout)
    if config.inference.checkpoint:
        return load_checkpoint(config.inference.checkpoint, architecture)
    info = checkpoint_store(config).find_latest()
    return load_checkpoint(info.path, architecture)


def build_trigger(config: RunConfig) -> AmmoTrigger:
    layout = resolve_layout(config)
    network = load_inference_network(config, layout)
    return AmmoTrigger(network, layout, min_confidence=config.inference.min_confidence)


def evaluate_failures(
    config: RunConfig, *, export_dir: str | Path | None = None
) -> List[FailingPoint]:
    """Report test points the saved network misclassifies; never writes checkpoints."""

    layout = resolve_layout(config)
    try:
        network = load_inference_network(config, layout)
    except CheckpointNotFound:
        L.error("No checkpoint to evaluate in %s", config.train.checkpoint_dir)
        raise
    dataset = load_dataset(
        config.data.directory,
        layout,
        test_fraction=config.data.test_fraction,
        seed=config.data.seed,
    )
    failures = find_failing_points(network, dataset.testing_data_points)
    L.info(
        "%d of %d test points misclassified",
        len(failures),
        len(dataset.testing_data_points),
    )
    if export_dir is not None:
        export_failures(failures, layout, export_dir)
    return failures


def export_failures(
    failures: Sequence[FailingPoint], layout: DigitLayout, export_dir: str | Path
) -> List[Path]:
    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for failure in failures:
        stem = Path(failure.source).stem.replace(" ", "")
        name = (
            f"{failure.index:04d}-{stem}-expected-{failure.expected.to_char()}"
            f"-got-{failure.predicted.to_char()}.png"
        )
        written.append(save_image(inputs_to_image(failure.inputs, layout), export_dir / name))
    L.info("Exported %d failing crops to %s", len(written), export_dir)
    return written


def _print_startup_summary(
    *,
    data_dir: str,
    layout: DigitLayout,
    dims: Sequence[int],
    train_points: int,
    test_points: int,
    param_count: int,
    start_epoch: int,
    checkpoint_dir: str,
) -> None:
    print("=== ammosnap training run ===")
    print(f"Screenshots   : {data_dir}")
    print(f"Digit slots   : {layout.num_slots} ({layout.alignment}-aligned)")
    print(f"Capture size  : {layout.capture_width}x{layout.capture_height}")
    print(f"Dimensions    : {list(dims)}")
    print(f"Data points   : {train_points} train / {test_points} test")
    print(f"Parameters    : {param_count}")
    print(f"Start epoch   : {start_epoch}")
    print(f"Checkpoints   : {checkpoint_dir}")
    print("=============================")


__all__ = [
    "build_architecture",
    "build_networks",
    "build_trigger",
    "evaluate_failures",
    "export_failures",
    "load_inference_network",
    "resolve_layout",
    "run_training",
]
