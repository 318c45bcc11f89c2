"""Deterministic per-run summaries of epoch metric logs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import numpy as np

# Bookkeeping fields written by the sinks and trainer, not metrics.
_SKIP = {"epoch", "seed", "batches", "points"}
# Metrics where larger is better; everything else is minimised.
_MAXIMISED = {"accuracy", "precision", "recall", "f1", "macro_f1", "r2"}


def _area(y: np.ndarray, x: np.ndarray) -> float:
    trapezoid = getattr(np, "trapezoid", None)
    if callable(trapezoid):
        return float(trapezoid(y, x))
    return float(np.trapz(y, x))


def compute_auc(points: Sequence[float]) -> float:
    """Area under ``points`` along an implicit epoch axis (unit spacing)."""

    if not points:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return _area(y, np.arange(len(points), dtype=np.float64))


def _series(records: Sequence[Mapping[str, object]]) -> Dict[str, List[tuple[int, float]]]:
    series: Dict[str, List[tuple[int, float]]] = {}
    for position, record in enumerate(records, start=1):
        epoch = int(record.get("epoch", position))
        for key, value in record.items():
            if key in _SKIP or isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            series.setdefault(key, []).append((epoch, float(value)))
    return series


def _describe(name: str, points: List[tuple[int, float]], tail: int) -> Dict[str, float]:
    epochs = [epoch for epoch, _ in points]
    values = np.asarray([value for _, value in points], dtype=np.float64)
    best = int(np.argmax(values) if name in _MAXIMISED else np.argmin(values))
    return {
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
        "first": float(values[0]),
        "last": float(values[-1]),
        "improvement": float(values[0] - values[-1]),
        "best_epoch": epochs[best],
        "tail_auc": compute_auc(values[-tail:].tolist() if tail else []),
    }


def build_summary(records: List[Mapping[str, object]], tail: int) -> Mapping[str, object]:
    """Summarise epoch records; ``tail`` bounds the window of the tail AUC."""

    tail_window = min(tail, len(records)) if records else 0
    metrics = {
        name: _describe(name, points, tail_window)
        for name, points in sorted(_series(records).items())
    }
    cost = metrics.get("cost")
    return {
        "version": 1,
        "records": len(records),
        "epochs": len({int(r.get("epoch", i)) for i, r in enumerate(records, start=1)}),
        "tail_window": tail_window,
        "best_epoch": cost["best_epoch"] if cost else None,
        "metrics": metrics,
    }


def read_records(metrics_jsonl: str | Path) -> List[Mapping[str, object]]:
    path = Path(metrics_jsonl)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def write_summary(metrics_jsonl: str | Path, out_summary_json: str | Path, *, tail: int = 32) -> str:
    """Write ``summary.json`` for an epoch metrics log and return its path."""

    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = build_summary(read_records(metrics_jsonl), tail)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "compute_auc", "read_records", "write_summary"]
