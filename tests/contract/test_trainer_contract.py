import json
from pathlib import Path

import pytest

from backpropnets.training import pipelines


def test_trainer_pipeline_produces_artifacts(tmp_path):
    config = {
        "data": {"name": "blobs", "options": {"n_points": 60, "n_classes": 3, "seed": 0}},
        "model": {"hidden": [5], "hidden_activation": "relu", "output_activation": "sigmoid"},
        "train": {
            "epochs": 3,
            "batch_size": 8,
            "seed": 11,
            "lr": 0.1,
            "regularization": 0.001,
            "loss": "mse",
            "run_dir": str(tmp_path / "run"),
            "enable_plots": False,
        },
    }

    result = pipelines.run_pipeline(config)
    run_dir = Path(config["train"]["run_dir"])
    assert Path(result.metrics_path).exists()
    assert result.steps == 3 * 6

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["network"]["sizes"] == [2, 5, 3]
    assert manifest["network"]["optimizer"] == "regularized"

    metrics = [
        json.loads(line)
        for line in Path(result.metrics_path).read_text().splitlines()
        if line
    ]
    assert [m["epoch"] for m in metrics] == [1, 2, 3]
    first = metrics[0]
    assert first["split"] == "train"
    assert "sha" in first and "seed" in first
    assert all("cost" in entry for entry in metrics)

    val = [json.loads(line) for line in (run_dir / "metrics_val.jsonl").read_text().splitlines()]
    assert len(val) == 3
    assert {"cost", "accuracy", "macro_f1"} <= set(val[0])

    test_metrics = json.loads((run_dir / "metrics_test.json").read_text())
    assert 0.0 <= test_metrics["accuracy"] <= 1.0
    assert (run_dir / "metrics_train.csv").exists()
    assert (run_dir / "metrics.jsonl").read_text() == Path(result.metrics_path).read_text()
    assert json.loads((run_dir / "config.json").read_text()) == config


def test_file_presets_are_loaded():
    config = pipelines.load_preset("xor-momentum")
    assert config["train"]["momentum"] == 0.8
    assert {"xor-sigmoid", "sine-momentum", "xor-momentum"} <= set(pipelines.presets())


def test_unknown_preset_lists_available_names():
    with pytest.raises(KeyError, match="Available presets"):
        pipelines.load_preset("missing")
