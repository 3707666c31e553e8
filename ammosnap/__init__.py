"""ammosnap public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .config import RunConfig, load_preset, presets
from .inference.decode import decode
from .inference.trigger import AmmoTrigger, TriggerOutcome, TriggerState, update
from .training.pipelines import build_trigger, evaluate_failures, run_training
from .training.trainer import Trainer

__version__ = "0.1.0"

__all__ = [
    "AmmoTrigger",
    "RunConfig",
    "Trainer",
    "TriggerOutcome",
    "TriggerState",
    "activations",
    "build_trigger",
    "decode",
    "evaluate_failures",
    "load_preset",
    "presets",
    "run_training",
    "types",
    "update",
]
