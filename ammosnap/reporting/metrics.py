"""Metrics sinks fed by the trainer's ``on_step``/``on_epoch`` callbacks."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Mapping

from .artifacts import git_sha


def _numeric(metrics: Mapping[str, float]) -> dict:
    return {k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))}


class JsonlSink:
    """Append-only JSONL writer; the file is truncated when the sink is created."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "test",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def _write(self, event: str, index: int, metrics: Mapping[str, float]) -> None:
        record = {
            "event": event,
            "index": int(index),
            "split": self.split,
            "seed": self.seed,
            "sha": self.sha,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self._write("step", step, metrics)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._write("epoch", epoch, metrics)


class CsvSink:
    """Periodic evaluations as CSV with a fixed column order."""

    FIELDS = ("step", "epoch", "batch", "cost", "accuracy", "num_points", "split")

    def __init__(self, path: str | Path, *, split: str = "test") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        row = {"step": int(step), "split": self.split}
        row.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.FIELDS, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["CsvSink", "JsonlSink"]
