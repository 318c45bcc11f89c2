"""Problem specifications and the one-hot label scheme."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Hashable, Sequence, Tuple

import numpy as np

from ..core.errors import OutOfRangeError, ShapeError
from ..core.matrix import Matrix, as_matrix, column
from .losses import REGISTRY, LearningError

TASK_TYPES = ("regression", "binary", "multiclass")


class OneHotEncoding:
    """Map class labels to one-hot columns and back (argmax decoding)."""

    def __init__(self, labels: Sequence[Hashable]) -> None:
        labels = tuple(labels)
        if not labels:
            raise ValueError("One-hot encoding needs at least one label")
        if len(set(labels)) != len(labels):
            raise ValueError(f"Duplicate labels in {labels!r}")
        self._labels = labels
        self._index = {label: idx for idx, label in enumerate(labels)}

    @property
    def labels(self) -> Tuple[Hashable, ...]:
        return self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def index(self, label: Hashable) -> int:
        try:
            return self._index[label]
        except KeyError:
            raise KeyError(f"Unknown label {label!r}; known labels: {list(self._labels)}") from None

    def label_at(self, idx: int) -> Hashable:
        if not 0 <= idx < len(self._labels):
            raise OutOfRangeError(f"Class index {idx} out of range for {len(self._labels)} classes")
        return self._labels[idx]

    def encode(self, label: Hashable) -> Matrix:
        values = np.zeros(len(self._labels))
        values[self.index(label)] = 1.0
        return column(values)

    def decode(self, encoded) -> Hashable:
        col = as_matrix(encoded)
        if col.shape != (len(self._labels), 1):
            raise ShapeError(f"Expected a {len(self._labels)}x1 column, got {col.rows}x{col.cols}")
        return self._labels[int(np.argmax(col.array[:, 0]))]


@dataclass(frozen=True)
class ProblemSpecification:
    """Input/output sizes, task type and the learning error used to train."""

    input_size: int
    output_size: int
    task_type: str
    error: LearningError
    class_labels: Tuple[Hashable, ...] | None = None

    def __post_init__(self) -> None:
        if self.input_size < 1 or self.output_size < 1:
            raise ShapeError(
                f"Problem sizes must be positive, got {self.input_size} -> {self.output_size}"
            )
        if self.task_type not in TASK_TYPES:
            raise ValueError(f"Unknown task type: {self.task_type}")
        if self.task_type == "binary" and self.output_size != 1:
            raise ShapeError(f"Binary problems have one output node, got {self.output_size}")
        if self.class_labels is not None:
            labels = tuple(self.class_labels)
            expected = 2 if self.task_type == "binary" else self.output_size
            if len(labels) != expected:
                raise ShapeError(f"Expected {expected} class labels, got {len(labels)}")
            object.__setattr__(self, "class_labels", labels)

    @property
    def is_classification(self) -> bool:
        return self.task_type != "regression"

    @property
    def is_regression(self) -> bool:
        return self.task_type == "regression"

    @property
    def num_classes(self) -> int | None:
        if self.task_type == "binary":
            return 2
        if self.task_type == "multiclass":
            return self.output_size
        return None

    def labels(self) -> Tuple[Hashable, ...]:
        if self.class_labels is not None:
            return self.class_labels
        return tuple(range(self.num_classes or 0))

    def encoding(self) -> OneHotEncoding:
        if self.task_type != "multiclass":
            raise ValueError(f"One-hot encoding applies to multiclass problems, not {self.task_type}")
        return OneHotEncoding(self.labels())


def regression_problem(
    input_size: int, output_size: int, error: str | LearningError = "auto"
) -> ProblemSpecification:
    return ProblemSpecification(
        input_size, output_size, "regression", REGISTRY.resolve(error, task_type="regression")
    )


def classification_problem(
    input_size: int,
    output_size: int,
    error: str | LearningError = "auto",
    class_labels: Sequence[Hashable] | None = None,
) -> ProblemSpecification:
    """Binary when there is a single output node, multiclass otherwise."""

    task_type = "binary" if output_size == 1 else "multiclass"
    labels = tuple(class_labels) if class_labels is not None else None
    return ProblemSpecification(
        input_size,
        output_size,
        task_type,
        REGISTRY.resolve(error, task_type=task_type),
        labels,
    )


__all__ = [
    "OneHotEncoding",
    "ProblemSpecification",
    "TASK_TYPES",
    "classification_problem",
    "regression_problem",
]
