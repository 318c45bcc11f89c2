"""Evaluation metrics for regression and classification problems."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.matrix import Matrix
from ..core.network import Network
from ..core.types import Array, LabelledDataPoint
from .losses import LearningError
from .problems import ProblemSpecification
from .trainer import stack_batch


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str, *, num_classes: int | None = None) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type == "multiclass":
        metrics = ["accuracy"]
        if num_classes and num_classes <= 20:
            metrics.append("macro_f1")
        return metrics
    if task_type == "binary":
        return ["accuracy", "precision", "recall", "f1"]
    raise ValueError(f"Unknown task type: {task_type}")


def class_indices(values: Array, task_type: str) -> Array:
    """Predicted or expected class per row (threshold 0.5 for binary, argmax otherwise)."""

    if task_type == "binary":
        return (values.reshape(-1) >= 0.5).astype(int)
    return np.argmax(values, axis=1)


def confusion_counts(pred_idx: Array, targ_idx: Array, num_classes: int) -> Array:
    """``counts[actual, predicted]``."""

    counts = np.zeros((num_classes, num_classes), dtype=np.float64)
    np.add.at(counts, (targ_idx, pred_idx), 1.0)
    return counts


def _per_class_scores(counts: Array) -> tuple[Array, Array, Array]:
    tp = np.diag(counts)
    fp = counts.sum(axis=0) - tp
    fn = counts.sum(axis=1) - tp
    precision = tp / (tp + fp + 1e-9)
    recall = tp / (tp + fn + 1e-9)
    f1 = 2 * precision * recall / (precision + recall + 1e-9)
    return precision, recall, f1


def compute_metric(
    name: str,
    predictions: Array,
    targets: Array,
    *,
    task_type: str,
    num_classes: int | None = None,
) -> MetricResult:
    """Compute one metric over row-per-point ``predictions`` and ``targets``."""

    key = name.lower()
    preds = np.asarray(predictions, dtype=np.float64)
    targs = np.asarray(targets, dtype=np.float64)
    if key == "mae":
        value = float(np.mean(np.abs(preds - targs)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((preds - targs) ** 2)))
    elif key == "r2":
        mean = np.mean(targs, axis=0, keepdims=True)
        ss_res = float(np.sum((targs - preds) ** 2))
        ss_tot = float(np.sum((targs - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / (ss_tot + 1e-9))
    elif key == "accuracy":
        value = float(np.mean(class_indices(preds, task_type) == class_indices(targs, task_type)))
    elif key in {"macro_f1", "precision", "recall", "f1"}:
        classes = 2 if task_type == "binary" else (num_classes or preds.shape[1])
        counts = confusion_counts(
            class_indices(preds, task_type), class_indices(targs, task_type), classes
        )
        precision, recall, f1 = _per_class_scores(counts)
        if key == "macro_f1":
            value = float(np.mean(f1))
        elif task_type == "binary":
            value = float({"precision": precision, "recall": recall, "f1": f1}[key][1])
        else:
            value = float(np.mean({"precision": precision, "recall": recall, "f1": f1}[key]))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predictions: Array,
    targets: Array,
    *,
    task_type: str,
    num_classes: int | None = None,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(
            name, predictions, targets, task_type=task_type, num_classes=num_classes
        )
        results[metric.name] = metric.value
    return results


# ----------------------------------------------------------------------------
# Network evaluation


@dataclass(frozen=True)
class EvaluationReport:
    """Average cost over a data set plus classification scores where relevant.

    Precision, recall and F1 are for the positive class on binary problems and
    macro-averaged over classes on multiclass problems.
    """

    average_cost: float
    points: int
    confusion_matrix: Matrix | None = None
    accuracy: float | None = None
    precision: float | None = None
    recall: float | None = None
    f1: float | None = None

    def as_dict(self) -> Dict[str, float]:
        values = {
            "cost": self.average_cost,
            "accuracy": self.accuracy,
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
        }
        return {k: float(v) for k, v in values.items() if v is not None}


def evaluate(
    network: Network,
    problem: ProblemSpecification,
    points: Iterable[LabelledDataPoint],
    learning_error: LearningError | None = None,
) -> EvaluationReport:
    """Score ``network`` on ``points`` without touching its retained state."""

    points = list(points)
    if not points:
        raise ValueError("Cannot evaluate on an empty data set")
    error = learning_error or problem.error
    inputs, expected = stack_batch(points)
    outputs = network.predict(inputs)
    average_cost = float(np.mean(error.batch_costs(expected, outputs)))
    if problem.is_regression:
        return EvaluationReport(average_cost=average_cost, points=len(points))

    preds = outputs.array.T
    targs = expected.array.T
    num_classes = problem.num_classes or 2
    counts = confusion_counts(
        class_indices(preds, problem.task_type), class_indices(targs, problem.task_type), num_classes
    )
    precision, recall, f1 = _per_class_scores(counts)
    if problem.task_type == "binary":
        p, r, f = precision[1], recall[1], f1[1]
    else:
        p, r, f = np.mean(precision), np.mean(recall), np.mean(f1)
    return EvaluationReport(
        average_cost=average_cost,
        points=len(points),
        confusion_matrix=Matrix(counts),
        accuracy=float(np.trace(counts) / counts.sum()),
        precision=float(p),
        recall=float(r),
        f1=float(f),
    )


__all__ = [
    "EvaluationReport",
    "MetricResult",
    "class_indices",
    "compute_metrics",
    "confusion_counts",
    "default_metrics",
    "evaluate",
]
