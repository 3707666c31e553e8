"""Run configuration: built-in presets, file overrides and typed sections."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError

_PRESETS: Dict[str, Mapping[str, object]] = {
    "halo-1080": {
        "data": {
            "directory": "screenshot-data/halo-infinite/1080/default",
            "test_fraction": 0.2,
            "seed": 0,
        },
        "model": {
            "hidden_sizes": [100],
            "noise_probability": 0.01,
            "noise_magnitude": 0.75,
            "noise_seed": 123,
            "init_seed": 0,
        },
        "train": {
            "batch_size": 100,
            "learn_rate": 0.05,
            "momentum": 0.9,
            "evaluate_every_batches": 5,
            "checkpoint_every_epochs": 100,
            "seed": 0,
            "checkpoint_dir": "checkpoints",
            "checkpoint_prefix": "neural_network_checkpoint_epoch_",
            "run_dir": "runs/halo-1080",
            "enable_plots": False,
        },
        "inference": {"min_confidence": 0.5},
    },
    "smoke": {
        "data": {"directory": "screenshot-data/smoke", "test_fraction": 0.25, "seed": 0},
        "model": {
            "hidden_sizes": [32],
            "noise_probability": 0.0,
            "noise_magnitude": 0.0,
            "noise_seed": 123,
            "init_seed": 0,
        },
        "train": {
            "batch_size": 4,
            "learn_rate": 0.05,
            "momentum": 0.9,
            "evaluate_every_batches": 1,
            "checkpoint_every_epochs": 5,
            "seed": 0,
            "checkpoint_dir": "runs/smoke/checkpoints",
            "run_dir": "runs/smoke",
            "enable_plots": False,
        },
        "inference": {"min_confidence": 0.0},
    },
}

SECTIONS = ("data", "model", "train", "inference")


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Dict[str, Any]:
    try:
        return deepcopy(dict(_PRESETS[name]))
    except KeyError as exc:
        raise ConfigError(f"Unknown preset: {name}") from exc


def read_config_file(path: str | Path) -> Dict[str, Any]:
    """Read a YAML or JSON config file into a mapping."""

    path = Path(path)
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    suffix = path.suffix.lower()
    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(text) or {}
        elif suffix == ".json":
            data = json.loads(text or "{}")
        else:
            raise ConfigError(f"Unsupported config file type: {path.suffix}")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Malformed config {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config {path.name} must decode to a mapping")
    return dict(data)


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _build(cls, data: Mapping[str, Any] | None, section: str):
    data = dict(data or {})
    known = set(cls.__dataclass_fields__)
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown keys in [{section}]: {sorted(unknown)}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigError(f"Invalid [{section}] section: {exc}") from exc


@dataclass(frozen=True)
class DataConfig:
    directory: str = "screenshot-data"
    test_fraction: float = 0.2
    seed: int = 0
    layout: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        if not 0 < float(self.test_fraction) < 1:
            raise ConfigError("data.test_fraction must be in (0, 1)")


@dataclass(frozen=True)
class ModelConfig:
    hidden_sizes: Tuple[int, ...] = (100,)
    noise_probability: float = 0.01
    noise_magnitude: float = 0.75
    noise_seed: int = 123
    init_seed: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "hidden_sizes", tuple(int(h) for h in self.hidden_sizes))
        if any(h <= 0 for h in self.hidden_sizes):
            raise ConfigError("model.hidden_sizes must be positive")
        if not 0.0 <= float(self.noise_probability) <= 1.0:
            raise ConfigError("model.noise_probability must be in [0, 1]")
        if float(self.noise_magnitude) < 0:
            raise ConfigError("model.noise_magnitude must be non-negative")


@dataclass(frozen=True)
class TrainConfig:
    batch_size: int = 100
    learn_rate: float = 0.05
    momentum: float = 0.9
    evaluate_every_batches: int = 5
    checkpoint_every_epochs: int = 100
    seed: int = 0
    checkpoint_dir: str = "checkpoints"
    checkpoint_prefix: str = "neural_network_checkpoint_epoch_"
    run_dir: str = "runs/ammosnap"
    enable_plots: bool = False

    def __post_init__(self) -> None:
        for name in ("batch_size", "evaluate_every_batches", "checkpoint_every_epochs"):
            if int(getattr(self, name)) <= 0:
                raise ConfigError(f"train.{name} must be positive")
        if float(self.learn_rate) <= 0:
            raise ConfigError("train.learn_rate must be positive")
        if not 0.0 <= float(self.momentum) < 1.0:
            raise ConfigError("train.momentum must be in [0, 1)")


@dataclass(frozen=True)
class InferenceConfig:
    min_confidence: float = 0.5
    checkpoint: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.min_confidence) <= 1.0:
            raise ConfigError("inference.min_confidence must be in [0, 1]")


@dataclass(frozen=True)
class RunConfig:
    data: DataConfig = field(default_factory=DataConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    train: TrainConfig = field(default_factory=TrainConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "RunConfig":
        unknown = set(config) - set(SECTIONS)
        if unknown:
            raise ConfigError(f"Unknown config sections: {sorted(unknown)}")
        return cls(
            data=_build(DataConfig, config.get("data"), "data"),
            model=_build(ModelConfig, config.get("model"), "model"),
            train=_build(TrainConfig, config.get("train"), "train"),
            inference=_build(InferenceConfig, config.get("inference"), "inference"),
        )

    def to_mapping(self) -> Dict[str, Any]:
        return json.loads(
            json.dumps(
                {
                    "data": self.data.__dict__,
                    "model": self.model.__dict__,
                    "train": self.train.__dict__,
                    "inference": self.inference.__dict__,
                }
            )
        )


__all__ = [
    "DataConfig",
    "InferenceConfig",
    "ModelConfig",
    "RunConfig",
    "TrainConfig",
    "load_preset",
    "merge_config",
    "presets",
    "read_config_file",
]
