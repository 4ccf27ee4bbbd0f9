import json
from pathlib import Path

import numpy as np
import pytest

from lossless import Network
from lossless.errors import ConfigurationError
from lossless.training import pipelines


def _config(run_dir, seed=11):
    config = pipelines.load_preset("spiral-quick")
    config["train"].update({"seed": seed, "time_budget": 0.5, "run_dir": str(run_dir)})
    return config


def test_pipeline_produces_artifacts(tmp_path):
    result = pipelines.run_pipeline(_config(tmp_path / "run"))
    run_dir = tmp_path / "run"
    for name in (
        "MyMLP.npz",
        "MyMLP.txt",
        "metrics.jsonl",
        "metrics_train.csv",
        "metrics_test.jsonl",
        "metrics_test.json",
        "summary.json",
        "config.json",
        "manifest.json",
    ):
        assert (run_dir / name).exists(), name

    assert result.state == "done"
    assert 49 <= result.batches <= 51
    manifest = json.loads(Path(result.artifacts["manifest"]).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "spiral"

    metrics = [json.loads(line) for line in Path(result.artifacts["metrics"]).read_text().splitlines()]
    assert metrics and metrics[0]["split"] == "train"
    assert all({"sha", "seed", "loss"} <= set(entry) for entry in metrics)

    loaded = Network.load(run_dir, "MyMLP")
    dataset_point = np.array([0.5, -0.25])
    assert loaded.predict(dataset_point).shape == (3,)


def test_pipeline_is_deterministic_with_manual_clock(tmp_path):
    first = pipelines.run_pipeline(_config(tmp_path / "run1", seed=99))
    second = pipelines.run_pipeline(_config(tmp_path / "run2", seed=99))
    assert Path(first.artifacts["metrics"]).read_text() == Path(second.artifacts["metrics"]).read_text()
    assert Path(first.artifacts["summary"]).read_text() == Path(second.artifacts["summary"]).read_text()
    a = Network.load(tmp_path / "run1", "MyMLP").state_dict()
    b = Network.load(tmp_path / "run2", "MyMLP").state_dict()
    assert all(np.array_equal(a[key], b[key]) for key in a)


def test_sweep_runs_every_combination(tmp_path):
    config = pipelines.load_preset("spiral-seed-sweep")
    config["sweep"] = {"seeds": [0, 1], "learning_rates": [0.5]}
    config["train"].update({"time_budget": 0.1, "run_dir": str(tmp_path / "sweep")})
    results = pipelines.run_pipeline(config)
    assert len(results) == 2
    assert (tmp_path / "sweep" / "lr0.5_s1" / "MyMLP.npz").exists()


def test_presets_include_file_presets():
    names = set(pipelines.presets())
    assert {"spiral-mlp", "spiral-quick", "separable-logistic", "spiral-relu"} <= names
    with pytest.raises(ConfigurationError):
        pipelines.load_preset("missing")


def test_mismatched_model_is_rejected(tmp_path):
    config = _config(tmp_path / "bad")
    config["model"]["layers"] = [{"type": "linear", "outputs": 2}, "softmax"]
    with pytest.raises(ConfigurationError):
        pipelines.run_pipeline(config)


def test_yaml_config_files_are_read(tmp_path):
    yaml = pytest.importorskip("yaml")
    path = tmp_path / "preset.yaml"
    path.write_text(yaml.safe_dump({"train": {"batch_size": 8}}))
    assert pipelines.read_config_file(path) == {"train": {"batch_size": 8}}

    bad = tmp_path / "preset.toml"
    bad.write_text("")
    with pytest.raises(ConfigurationError):
        pipelines.read_config_file(bad)
