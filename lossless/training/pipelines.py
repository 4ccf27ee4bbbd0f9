"""Config-driven training runs with artifacts written to a run directory."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np

from .. import data as datasets
from .. import persistence
from ..core.network import Network
from ..core.types import RunResult
from ..errors import ConfigurationError
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import ConsoleReporter, CsvSink, JsonlSink
from ..reporting.summary import write_summary
from .clock import Clock, ManualClock, MonotonicClock

_SPIRAL_LAYERS: List[Any] = [
    {"type": "linear", "outputs": 7},
    "tanh",
    {"type": "linear", "outputs": 3},
    "softmax",
]

_PRESETS: Dict[str, Mapping[str, Any]] = {
    "spiral-mlp": {
        "data": {"name": "spiral", "options": {"train_size": 120, "seed": 0}},
        "model": {"input_size": 2, "layers": _SPIRAL_LAYERS},
        "train": {
            "batch_size": 32,
            "learning_rate": 1.0,
            "time_budget": 10.0,
            "seed": 0,
            "loss": "ce",
            "name": "MyMLP",
            "run_dir": "savednetworks",
            "print_every": 250,
        },
    },
    "spiral-quick": {
        "data": {"name": "spiral", "options": {"train_size": 120, "seed": 0}},
        "model": {"input_size": 2, "layers": _SPIRAL_LAYERS},
        "train": {
            "batch_size": 32,
            "learning_rate": 1.0,
            "time_budget": 2.0,
            "seed": 0,
            "loss": "ce",
            "name": "MyMLP",
            "run_dir": "runs/spiral-quick",
            "clock": {"type": "manual", "tick": 0.01},
            "print_every": 0,
        },
    },
    "separable-logistic": {
        "data": {"name": "separable", "options": {"repeats": 32}},
        "model": {"input_size": 2, "layers": [{"type": "linear", "outputs": 2}, "softmax"]},
        "train": {
            "batch_size": 8,
            "learning_rate": 0.5,
            "time_budget": 1.0,
            "seed": 0,
            "name": "separable",
            "run_dir": "runs/separable-logistic",
            "clock": {"type": "manual", "tick": 0.02},
            "print_every": 0,
        },
    },
    "spiral-seed-sweep": {
        "sweep": {"seeds": [0, 1, 2], "learning_rates": [0.5, 1.0]},
        "data": {"name": "spiral", "options": {"train_size": 120, "seed": 0}},
        "model": {"input_size": 2, "layers": _SPIRAL_LAYERS},
        "train": {
            "batch_size": 32,
            "time_budget": 1.0,
            "name": "MyMLP",
            "run_dir": "runs/spiral-sweep",
            "clock": {"type": "manual", "tick": 0.01},
            "print_every": 0,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, Any]] | None = None


def read_config_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ConfigurationError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, Any]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, Any]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise ConfigurationError(
                        f"Preset {file.name} is missing required sections: {missing_str}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, Any]]:
    combined: Dict[str, Mapping[str, Any]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Dict[str, Any]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return dict(file_overrides[name])
    try:
        return deepcopy(dict(_PRESETS[name]))
    except KeyError as exc:
        raise ConfigurationError(f"Unknown preset: {name}") from exc


def run_pipeline(config: Mapping[str, Any]) -> RunResult | List[RunResult]:
    if "sweep" in config:
        return _run_sweep(config)
    return _train_single(config)


def _run_sweep(config: Mapping[str, Any]) -> List[RunResult]:
    sweep_cfg = config["sweep"]
    base_lr = config.get("train", {}).get("learning_rate", 1.0)
    base_dir = Path(config.get("train", {}).get("run_dir", "runs/sweep"))
    results: List[RunResult] = []
    for lr in sweep_cfg.get("learning_rates", [base_lr]):
        for seed in sweep_cfg.get("seeds", [0]):
            cfg = deepcopy(dict(config))
            cfg.pop("sweep", None)
            train_cfg = cfg.setdefault("train", {})
            train_cfg.update(
                {"seed": seed, "learning_rate": lr, "run_dir": str(base_dir / f"lr{lr}_s{seed}")}
            )
            results.append(_train_single(cfg))
    return results


def build_network(model_cfg: Mapping[str, Any], train_cfg: Mapping[str, Any], input_size: int) -> Network:
    layers = model_cfg.get("layers")
    if not layers:
        raise ConfigurationError("model.layers must list at least one layer")
    network = Network(
        batch_size=train_cfg.get("batch_size", 32),
        learning_rate=train_cfg.get("learning_rate", 1.0),
        loss=str(train_cfg.get("loss", "ce")),
    )
    seed = int(train_cfg.get("seed", 0))
    network.initialize(int(model_cfg.get("input_size", input_size)), list(layers), seed=seed)
    return network


def build_clock(train_cfg: Mapping[str, Any]) -> Clock:
    clock_cfg = train_cfg.get("clock") or {"type": "wall"}
    if isinstance(clock_cfg, str):
        clock_cfg = {"type": clock_cfg}
    kind = clock_cfg.get("type", "wall")
    if kind == "wall":
        return MonotonicClock()
    if kind == "manual":
        return ManualClock(tick=float(clock_cfg.get("tick", 0.01)))
    raise ConfigurationError(f"Unknown clock type: {kind}")


def _train_single(config: Mapping[str, Any]) -> RunResult:
    data_cfg = dict(config.get("data", {}))
    model_cfg = dict(config.get("model", {}))
    train_cfg = dict(config.get("train", {}))

    dataset = datasets.get(data_cfg.get("name", "spiral"), **data_cfg.get("options", {}))
    network = build_network(model_cfg, train_cfg, dataset.input_size)
    if network.input_size != dataset.input_size:
        raise ConfigurationError(
            f"Configured input_size={network.input_size} but dataset {dataset.name!r} "
            f"has {dataset.input_size} inputs"
        )
    if network.output_size != dataset.output_size:
        raise ConfigurationError(
            f"Network produces {network.output_size} outputs but dataset {dataset.name!r} "
            f"has {dataset.output_size} targets"
        )

    seed = int(train_cfg.get("seed", 0))
    budget = float(train_cfg.get("time_budget", 10.0))
    name = str(train_cfg.get("name", "network"))
    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        network=network,
        training=len(dataset.training),
        testing=len(dataset.testing),
        budget=budget,
    )

    split_loggers = {
        "train": [
            JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed),
            CsvSink(run_dir / "metrics_train.csv", split="train"),
        ],
        "test": [
            JsonlSink(run_dir / "metrics_test.jsonl", split="test", seed=seed),
            CsvSink(run_dir / "metrics_test.csv", split="test"),
        ],
    }
    callbacks: List[object] = []
    print_every = int(train_cfg.get("print_every", 0))
    if print_every > 0:
        callbacks.append(ConsoleReporter(every=print_every))

    result = network.train(
        dataset.training,
        dataset.testing,
        budget,
        clock=build_clock(train_cfg),
        rng=np.random.default_rng(seed + 1),
        callbacks=callbacks,
        split_loggers=split_loggers,
    )

    final_test = {}
    if result.test_loss is not None:
        final_test = {"loss": result.test_loss, "accuracy": result.test_accuracy}
    (run_dir / "metrics_test.json").write_text(json.dumps(final_test, indent=2))

    model_path = persistence.save(network, run_dir, name)
    report = persistence.pretty_print(network, run_dir, name)

    train_jsonl = run_dir / "metrics_train.jsonl"
    metrics_alias = run_dir / "metrics.jsonl"
    metrics_alias.write_text(train_jsonl.read_text())
    summary_path = write_summary(result, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32)))

    safe_config = json.loads(json.dumps(config))
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    artifacts = {
        "model": str(model_path),
        "report": str(report),
        "metrics": str(metrics_alias),
        "summary": str(summary_path),
    }
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        artifacts=artifacts,
    )
    artifacts["manifest"] = manifest

    print(
        f"Finished after {result.epochs} epochs / {result.batches} batches: "
        f"train loss {result.train_loss:.4f}"
        + (f", test accuracy {result.test_accuracy:.2%}" if result.test_accuracy is not None else "")
    )
    return RunResult(
        batches=result.batches,
        epochs=result.epochs,
        examples_seen=result.examples_seen,
        elapsed=result.elapsed,
        state=result.state,
        train_loss=result.train_loss,
        test_loss=result.test_loss,
        test_accuracy=result.test_accuracy,
        history=result.history,
        artifacts=artifacts,
    )


def _resolve_run_dir(train_cfg: Mapping[str, Any], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(train_cfg["run_dir"])
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    network: Network,
    training: int,
    testing: int,
    budget: float,
) -> None:
    dims = [network.input_size] + [layer.output_size for layer in network.layers]
    layers = " -> ".join(layer.tag for layer in network.layers)
    print("=== lossless run ===")
    print(f"Dataset       : {dataset_name} ({training} train / {testing} test)")
    print(f"Layers        : {layers}")
    print(f"Dimensions    : {dims}")
    print(f"Loss          : {network.loss}")
    print(f"Batch size    : {network.batch_size}")
    print(f"Learning rate : {network.learning_rate}")
    print(f"Time budget   : {budget}s")
    print(f"Parameters    : {network.parameter_count()}")
    print("====================")


__all__ = ["run_pipeline", "load_preset", "presets", "build_network", "build_clock", "read_config_file"]
