"""Pipeline assembly: presets, config loading and end-to-end training runs."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.network import Network
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from .losses import REGISTRY as LOSS_REGISTRY
from .metrics import compute_metrics, default_metrics, evaluate
from .optimizers import gradient_descent
from .problems import ProblemSpecification
from .trainer import BackpropagationTrainer, stack_batch

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-sigmoid": {
        "data": {"name": "xor", "options": {"repeats": 1}},
        "model": {"hidden": [4], "hidden_activation": "tanh", "output_activation": "sigmoid"},
        "train": {
            "epochs": 300,
            "batch_size": 4,
            "seed": 3,
            "lr": 0.5,
            "loss": "bce",
            "run_dir": "runs/xor-sigmoid",
            "enable_plots": False,
        },
    },
    "sine-momentum": {
        "data": {"name": "sine", "options": {"freq": 1.0, "n_points": 128, "seed": 0}},
        "model": {"hidden": [16], "hidden_activation": "tanh", "output_activation": "linear"},
        "train": {
            "epochs": 40,
            "batch_size": 16,
            "seed": 7,
            "lr": 0.05,
            "momentum": 0.9,
            "loss": "mse",
            "run_dir": "runs/sine-momentum",
            "enable_plots": False,
        },
    },
    "blobs-l2": {
        "data": {"name": "blobs", "options": {"n_points": 150, "n_classes": 3, "seed": 0}},
        "model": {"hidden": [8], "hidden_activation": "relu", "output_activation": "sigmoid"},
        "train": {
            "epochs": 30,
            "batch_size": 10,
            "seed": 1,
            "lr": 0.05,
            "regularization": 0.001,
            "loss": "mse",
            "run_dir": "runs/blobs-l2",
            "enable_plots": False,
        },
    },
    "csv-regression": {
        "data": {"name": "csv_regression", "options": {"seed": 0}},
        "model": {"hidden": [6], "hidden_activation": "leakyRelu", "output_activation": "linear"},
        "train": {
            "epochs": 25,
            "batch_size": 8,
            "seed": 0,
            "lr": 0.02,
            "loss": "mse",
            "run_dir": "runs/csv-regression",
            "enable_plots": False,
        },
    },
    "csv-classification": {
        "data": {"name": "csv_classification", "options": {"seed": 0}},
        "model": {"hidden": [6], "hidden_activation": "tanh", "output_activation": "sigmoid"},
        "train": {
            "epochs": 40,
            "batch_size": 5,
            "seed": 0,
            "lr": 0.3,
            "momentum": 0.5,
            "loss": "mse",
            "run_dir": "runs/csv-classification",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None

_REQUIRED_SECTIONS = {"data", "model", "train"}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Decode a JSON or YAML config file into a mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError:
        available = ", ".join(sorted(presets()))
        raise KeyError(f"Unknown preset: {name}. Available presets: {available}") from None


def build_problem(data_spec: registry.DataSpec, loss: str = "auto") -> ProblemSpecification:
    """Problem specification matching a dataset's shape and task type."""

    error = LOSS_REGISTRY.resolve(loss, task_type=data_spec.task_type)
    return ProblemSpecification(
        input_size=data_spec.d_in,
        output_size=data_spec.d_out,
        task_type=data_spec.task_type,
        error=error,
        class_labels=data_spec.class_labels,
    )


def build_network(data_spec: registry.DataSpec, model_cfg: Mapping[str, object], seed: int) -> Network:
    hidden = [int(h) for h in model_cfg.get("hidden", [])]
    sizes = [data_spec.d_in, *hidden, data_spec.d_out]
    hidden_activation = str(model_cfg.get("hidden_activation", "relu"))
    output_activation = str(model_cfg.get("output_activation", "sigmoid"))
    activations = [hidden_activation] * len(hidden) + [output_activation]
    return Network.build(sizes, activations, seed=seed)


class _SplitEvaluator:
    """Score the network on a held-out split after every training epoch."""

    def __init__(
        self,
        network: Network,
        problem: ProblemSpecification,
        dataset: registry.DatasetSpec,
        split: str,
        sinks: Sequence[object],
    ) -> None:
        self.network = network
        self.problem = problem
        self.dataset = dataset
        self.split = split
        self.sinks = list(sinks)
        self.metric_names = default_metrics(problem.task_type, num_classes=problem.num_classes)

    def score(self) -> Mapping[str, float]:
        points = list(self.dataset.iter_split(self.split))
        if not points:
            return {}
        report = evaluate(self.network, self.problem, points)
        metrics: Dict[str, float] = report.as_dict()
        inputs, expected = stack_batch(points)
        targets = expected.array.T
        predictions = self.network.predict(inputs).array.T
        metrics.update(
            compute_metrics(
                self.metric_names,
                predictions,
                targets,
                task_type=self.problem.task_type,
                num_classes=self.problem.num_classes,
            )
        )
        return metrics

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        scores = self.score()
        if not scores:
            return
        for sink in self.sinks:
            sink.on_epoch(epoch, scores)


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get_dataset(data_cfg["name"], **data_cfg.get("options", {}))
    data_spec = dataset.data_spec

    epochs = int(train_cfg.get("epochs", 1))
    batch_size = int(train_cfg.get("batch_size", 1))
    seed = int(train_cfg.get("seed", 0))
    workers = int(train_cfg.get("workers", 1))
    loss_name = str(train_cfg.get("loss", "auto"))
    momentum = train_cfg.get("momentum")
    regularization = train_cfg.get("regularization")

    problem = build_problem(data_spec, loss_name)
    network = build_network(data_spec, model_cfg, seed)
    optimizer = gradient_descent(
        float(train_cfg.get("lr", 0.01)),
        momentum=float(momentum) if momentum is not None else None,
        regularization=float(regularization) if regularization is not None else None,
    )

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=dataset.name,
        sizes=network.sizes,
        activations=[layer.activation.name for layer in network.layers[1:]],
        loss=problem.error.name,
        optimizer=optimizer.options.kind,
        param_count=network.parameter_count(),
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    callbacks: List[object] = [train_jsonl, train_csv, plots]

    if dataset.splits.get("val", 0) > 0:
        val_jsonl = JsonlSink(run_dir / "metrics_val.jsonl", split="val", seed=seed)
        val_csv = CsvSink(run_dir / "metrics_val.csv", split="val")
        callbacks.append(_SplitEvaluator(network, problem, dataset, "val", [val_jsonl, val_csv]))

    trainer = BackpropagationTrainer(optimizer, seed=seed, workers=workers, callbacks=callbacks)
    result = trainer.train(
        problem,
        network,
        dataset.source("train", seed),
        batch_size,
        epochs,
        randomize=True,
    )
    plots.close()

    test_metrics: Mapping[str, float] = {}
    if dataset.splits.get("test", 0) > 0:
        test_metrics = _SplitEvaluator(network, problem, dataset, "test", []).score()
    (run_dir / "metrics_test.json").write_text(json.dumps(test_metrics, indent=2, sort_keys=True))

    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        network={
            "sizes": network.sizes,
            "activations": [layer.activation.name for layer in network.layers],
            "parameters": network.parameter_count(),
            "optimizer": optimizer.options.kind,
        },
    )
    summary_tail = int(train_cfg.get("summary_tail", 32))
    summary_path = write_summary(train_jsonl.path, run_dir / "summary.json", tail=summary_tail)
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    metrics_alias = run_dir / "metrics.jsonl"
    metrics_alias.write_text(train_jsonl.path.read_text())

    return RunResult(
        steps=result.batches,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=str(summary_path),
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    sizes: Sequence[int],
    activations: Sequence[str],
    loss: str,
    optimizer: str,
    param_count: int,
) -> None:
    print("=== backpropnets run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Layer sizes   : {list(sizes)}")
    print(f"Activations   : {', '.join(activations)}")
    print(f"Loss          : {loss}")
    print(f"Optimizer     : gradient descent ({optimizer})")
    print(f"Parameters    : {param_count}")
    print("========================")


__all__ = ["build_network", "build_problem", "load_preset", "presets", "read_config_file", "run_pipeline"]
