"""Command line entry point for backpropnets training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from backpropnets.core.activations import available_activations
from backpropnets.data import available_datasets
from backpropnets.training import pipelines


def _format_result(result) -> str:
    payload = {
        "steps": result.steps,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="xor-sigmoid",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--dataset",
        choices=sorted(available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--csv-path", help="Path to a CSV file for csv_* datasets")
    parser.add_argument("--target-col", help="Target column name for CSV datasets")
    parser.add_argument(
        "--hidden",
        type=int,
        nargs="+",
        help="Hidden layer sizes, e.g. --hidden 8 4",
    )
    parser.add_argument(
        "--activation",
        choices=available_activations(),
        help="Activation used by every hidden layer",
    )
    parser.add_argument("--epochs", type=int, help="Number of training epochs")
    parser.add_argument("--batch-size", type=int, help="Mini-batch size (0 = full batch)")
    parser.add_argument("--lr", type=float, help="Learning rate")
    parser.add_argument("--momentum", type=float, help="Momentum coefficient")
    parser.add_argument("--regularization", type=float, help="L2 regularization rate")
    parser.add_argument(
        "--workers", type=int, help="Threads used to accumulate gradients per batch"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed used for dataset splits and training",
    )
    parser.add_argument("--run-dir", help="Directory receiving run artifacts")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Enable plotting adapters"
    )
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


def _apply_args(config: dict, args: argparse.Namespace) -> dict:
    data_cfg = config.setdefault("data", {})
    model_cfg = config.setdefault("model", {})
    train_cfg = config.setdefault("train", {})

    if args.dataset:
        data_cfg["name"] = args.dataset
        data_cfg["options"] = {}
    opts = data_cfg.setdefault("options", {})
    if data_cfg.get("name", "").startswith("csv_"):
        if args.csv_path:
            opts["csv_path"] = args.csv_path
        if args.target_col:
            opts["target_col"] = args.target_col

    if args.hidden is not None:
        model_cfg["hidden"] = list(args.hidden)
    if args.activation:
        model_cfg["hidden_activation"] = args.activation

    overrides = {
        "epochs": args.epochs,
        "batch_size": args.batch_size,
        "lr": args.lr,
        "momentum": args.momentum,
        "regularization": args.regularization,
        "workers": args.workers,
        "run_dir": args.run_dir,
    }
    for key, value in overrides.items():
        if value is not None:
            train_cfg[key] = value

    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
        if args.dataset:
            opts["seed"] = int(args.seed)
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    return config


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

    config = _apply_args(config, args)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
