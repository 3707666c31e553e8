"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

import numpy as np


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"
    return out.decode().strip()


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    extra: Mapping[str, object] | None = None,
) -> str:
    """Write a manifest JSON file capturing what produced a run."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": dict(config),
        "dataset": dict(dataset_provenance),
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
        },
    }
    if extra:
        manifest.update(extra)
    path.write_text(json.dumps(manifest, indent=2, default=str))
    return str(path)


__all__ = ["git_sha", "write_manifest"]
