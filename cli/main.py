"""Command line entry point for lossless training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from lossless.core.types import RunResult
from lossless.training import pipelines


def _format_result(result: RunResult) -> str:
    payload = {
        "state": result.state,
        "epochs": result.epochs,
        "batches": result.batches,
        "train_loss": result.train_loss,
        "test_loss": result.test_loss,
        "test_accuracy": result.test_accuracy,
    }
    payload.update(result.artifacts)
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="spiral-mlp",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--seed", type=int, help="Seed used for initialization and shuffling")
    parser.add_argument(
        "--time-budget", type=float, help="Training budget in seconds (wall clock)"
    )
    parser.add_argument("--batch-size", type=int, help="Override the mini-batch size")
    parser.add_argument("--learning-rate", type=float, help="Override the learning rate")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving run artifacts")
    parser.add_argument("--name", help="Base file name of the saved network")
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = dict(pipelines.read_config_file(args.config))
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.time_budget is not None:
        train_cfg["time_budget"] = float(args.time_budget)
        train_cfg["clock"] = {"type": "wall"}
    if args.batch_size is not None:
        train_cfg["batch_size"] = int(args.batch_size)
    if args.learning_rate is not None:
        train_cfg["learning_rate"] = float(args.learning_rate)
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    if args.name:
        train_cfg["name"] = args.name

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)

    if isinstance(result, list):
        for item in result:
            print(_format_result(item))
    else:
        print(_format_result(result))


if __name__ == "__main__":
    main()
