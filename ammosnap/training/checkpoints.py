"""Epoch-tagged network checkpoints stored as compressed ``.npz`` archives.

Each archive holds a JSON ``header`` (format version, epoch, layer
descriptors with their ``kind`` discriminant, cost name) plus
``layer<i>.weights`` / ``layer<i>.biases`` arrays for every Dense layer.
"""

from __future__ import annotations

import json
import logging
import os
import re
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import numpy as np

from ..core.layers import DenseLayer, layer_from_description
from ..core.network import NetworkArchitecture, NeuralNetwork
from ..errors import CheckpointFormatError, CheckpointNotFound, IOFailure

L = logging.getLogger("ammosnap.checkpoints")

FORMAT_VERSION = 1
DEFAULT_PREFIX = "neural_network_checkpoint_epoch_"
SUFFIX = ".npz"


@dataclass(frozen=True)
class CheckpointInfo:
    path: Path
    epoch_index: int


class CheckpointStore:
    """Save, load and discover checkpoints named ``<prefix><epoch>.npz``."""

    def __init__(self, directory: str | Path, prefix: str = DEFAULT_PREFIX) -> None:
        if not prefix or "/" in prefix:
            raise ValueError(f"Invalid checkpoint prefix: {prefix!r}")
        self.directory = Path(directory)
        self.prefix = prefix
        self._pattern = re.compile(rf"^{re.escape(prefix)}(\d+){re.escape(SUFFIX)}$")

    def path_for(self, epoch_index: int) -> Path:
        return self.directory / f"{self.prefix}{int(epoch_index)}{SUFFIX}"

    def save(self, network: NeuralNetwork, epoch_index: int) -> Path:
        """Write ``network`` for ``epoch_index``; the file appears atomically."""

        if epoch_index < 0:
            raise ValueError("epoch_index must be non-negative")
        header = {
            "format_version": FORMAT_VERSION,
            "epoch_index": int(epoch_index),
            "cost": network.cost_function.name,
            "layers": network.describe(),
        }
        payload = {"header": np.array(json.dumps(header))}
        for idx, layer in enumerate(network.layers):
            if isinstance(layer, DenseLayer):
                payload[f"layer{idx}.weights"] = layer.weights
                payload[f"layer{idx}.biases"] = layer.biases

        path = self.path_for(epoch_index)
        tmp_path = path.with_name(f".{path.name}.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("wb") as handle:
                np.savez_compressed(handle, **payload)
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path.exists():
                tmp_path.unlink()
            raise IOFailure(f"Failed to save checkpoint {path}: {exc}") from exc
        L.info("Saved checkpoint %s", path)
        return path

    def load(
        self, path: str | Path, architecture: NetworkArchitecture | None = None
    ) -> NeuralNetwork:
        return load_checkpoint(path, architecture)

    def list_checkpoints(self) -> List[CheckpointInfo]:
        if not self.directory.is_dir():
            return []
        found = []
        for entry in self.directory.iterdir():
            match = self._pattern.match(entry.name)
            if match and entry.is_file():
                found.append(CheckpointInfo(path=entry, epoch_index=int(match.group(1))))
        return sorted(found, key=lambda info: info.epoch_index)

    def find_latest(self) -> CheckpointInfo:
        checkpoints = self.list_checkpoints()
        if not checkpoints:
            raise CheckpointNotFound(
                f"No checkpoints named {self.prefix}<epoch>{SUFFIX} in {self.directory}"
            )
        return checkpoints[-1]


def load_checkpoint(
    path: str | Path, architecture: NetworkArchitecture | None = None
) -> NeuralNetwork:
    """Rebuild the network stored at ``path``.

    Raises :class:`ShapeError` when ``architecture`` is given and the saved
    layers have a different shape.
    """

    path = Path(path)
    try:
        archive = np.load(path, allow_pickle=False)
    except FileNotFoundError as exc:
        raise IOFailure(f"Checkpoint not found: {path}") from exc
    except (ValueError, zipfile.BadZipFile) as exc:
        raise CheckpointFormatError(f"Not a checkpoint archive: {path}") from exc
    except OSError as exc:
        raise IOFailure(f"Failed to read checkpoint {path}: {exc}") from exc

    with archive:
        try:
            header = json.loads(str(archive["header"]))
            version = header.get("format_version")
            if version != FORMAT_VERSION:
                raise CheckpointFormatError(
                    f"Unsupported checkpoint format {version!r} in {path}"
                )
            descriptions = header["layers"]
            if not isinstance(descriptions, list) or not descriptions:
                raise CheckpointFormatError(f"Checkpoint {path} lists no layers")
            layers = [layer_from_description(desc) for desc in descriptions]
            for idx, layer in enumerate(layers):
                if isinstance(layer, DenseLayer):
                    layer.load_parameters(
                        archive[f"layer{idx}.weights"], archive[f"layer{idx}.biases"]
                    )
            network = NeuralNetwork(layers, cost=str(header["cost"]))
        except (
            AttributeError,
            KeyError,
            TypeError,
            json.JSONDecodeError,
            zipfile.BadZipFile,
        ) as exc:
            raise CheckpointFormatError(f"Malformed checkpoint {path}: {exc}") from exc

    if architecture is not None:
        architecture.validate(network)
    return network


def resume_from_latest(
    store: CheckpointStore, architecture: NetworkArchitecture | None = None
) -> Tuple[NeuralNetwork, int]:
    """Load the newest checkpoint and return it with the next epoch to train."""

    info = store.find_latest()
    network = store.load(info.path, architecture)
    L.info("Resuming from %s (epoch %d)", info.path, info.epoch_index)
    return network, info.epoch_index + 1


__all__ = [
    "CheckpointInfo",
    "CheckpointStore",
    "DEFAULT_PREFIX",
    "load_checkpoint",
    "resume_from_latest",
]
