"""Command line entry point for training and checking the ammo digit classifier."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Iterable

from ammosnap.config import RunConfig, load_preset, merge_config, presets, read_config_file
from ammosnap.errors import AmmoSnapError
from ammosnap.training import pipelines

L = logging.getLogger("ammosnap.cli")

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(log_level: str = "info") -> None:
    level = LOG_LEVELS.get(str(log_level or "").strip().lower(), logging.INFO)
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=level, format="%(asctime)sZ [%(levelname)s] %(name)s: %(message)s", force=True
    )
    if level > logging.DEBUG:
        logging.getLogger("matplotlib").setLevel(logging.WARNING)
        logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=sorted(presets().keys()),
        default="halo-1080",
        help="Built-in configuration to start from",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--resume-training-from-last-checkpoint",
        dest="resume",
        action="store_true",
        help="Continue training from the newest checkpoint",
    )
    parser.add_argument(
        "--display-failing-test-points",
        dest="display_failures",
        action="store_true",
        help="Load the newest checkpoint and list misclassified test points",
    )
    parser.add_argument(
        "--export-failures",
        type=Path,
        metavar="DIR",
        help="Also write each misclassified crop as a PNG into DIR",
    )
    parser.add_argument(
        "--max-epochs",
        type=int,
        help="Stop after this many epochs (default: train until interrupted)",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=sorted(LOG_LEVELS),
        help="Logging verbosity",
    )
    args = parser.parse_args(argv)
    if args.resume and args.display_failures:
        parser.error("--resume-training-from-last-checkpoint and --display-failing-test-points are exclusive")
    if args.export_failures is not None and not args.display_failures:
        parser.error("--export-failures requires --display-failing-test-points")
    if args.max_epochs is not None and args.max_epochs <= 0:
        parser.error("--max-epochs must be positive")
    return args


def resolve_config(args: argparse.Namespace) -> RunConfig:
    config = load_preset(args.preset)
    if args.config:
        config = merge_config(config, read_config_file(args.config))
    return RunConfig.from_mapping(config)


def _format_failure(failure) -> str:
    return (
        f"{failure.source} (point {failure.index}): expected {failure.expected.to_char()}, "
        f"got {failure.predicted.to_char()} with confidence {failure.confidence:.3f}"
    )


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    if args.list_presets:
        for name in sorted(presets().keys()):
            print(name)
        return 0

    try:
        config = resolve_config(args)
        if args.display_failures:
            failures = pipelines.evaluate_failures(config, export_dir=args.export_failures)
            for failure in failures:
                print(_format_failure(failure))
            print(f"{len(failures)} failing test points")
            return 0
        result = pipelines.run_training(
            config, resume=args.resume, max_epochs=args.max_epochs
        )
    except AmmoSnapError as exc:
        L.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        L.warning("Interrupted")
        return 130

    print(
        json.dumps(
            {
                "epochs": result.epochs,
                "last_epoch": result.last_epoch,
                "checkpoints": list(result.checkpoints),
                "metrics": result.metrics_path,
                "manifest": result.manifest_path,
            },
            sort_keys=True,
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
