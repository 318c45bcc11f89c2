"""Cost catalog and the learning-error registry used by the trainer."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.activations import ActivationFunction
from ..core.errors import OutOfRangeError, ShapeError
from ..core.matrix import Matrix, as_matrix
from ..core.types import Array

NodeCostFn = Callable[[Array, Array], Array]
TotalCostEvaluator = Callable[[Array], float]

EPSILON = 1e-12


# ----------------------------------------------------------------------------
# Node costs, elementwise over (expected, actual)


def squared_error(expected: Array, actual: Array) -> Array:
    return (expected - actual) ** 2


def squared_error_derivative(expected: Array, actual: Array) -> Array:
    return 2.0 * (actual - expected)


def _clip(actual: Array) -> Array:
    return np.clip(actual, EPSILON, 1.0 - EPSILON)


def binary_cross_entropy(expected: Array, actual: Array) -> Array:
    a = _clip(actual)
    return -expected * np.log(a) - (1.0 - expected) * np.log(1.0 - a)


def binary_cross_entropy_derivative(expected: Array, actual: Array) -> Array:
    a = _clip(actual)
    return (a - expected) / (a * (1.0 - a))


def categorical_cross_entropy(expected: Array, actual: Array) -> Array:
    return -expected * np.log(_clip(actual))


def categorical_cross_entropy_derivative(expected: Array, actual: Array) -> Array:
    return -expected / _clip(actual)


def sum_cost_evaluator(values: Array | Matrix) -> float:
    return float(np.sum(_as_array(values)))


def mean_cost_evaluator(values: Array | Matrix) -> float:
    return float(np.mean(_as_array(values)))


_REDUCERS: Dict[str, Callable[..., Array]] = {"sum": np.sum, "mean": np.mean}
_EVALUATORS: Dict[str, TotalCostEvaluator] = {"sum": sum_cost_evaluator, "mean": mean_cost_evaluator}


def _as_array(values: Array | Matrix) -> Array:
    if isinstance(values, Matrix):
        return values.array
    return np.asarray(values, dtype=np.float64)


# ----------------------------------------------------------------------------
# Learning error


@dataclass(frozen=True)
class LearningError:
    """Node cost, its derivative w.r.t. ``actual`` and a sum/mean reducer.

    Columns are compared node by node; ``O x B`` matrices are compared column
    by column, one column per data point.
    """

    name: str
    node_cost_function: NodeCostFn
    node_cost_derivative: NodeCostFn
    reduction: str = "mean"

    def __post_init__(self) -> None:
        if self.reduction not in _REDUCERS:
            raise ValueError(f"Unknown reduction {self.reduction!r}; expected 'sum' or 'mean'")

    @property
    def total_cost_evaluator(self) -> TotalCostEvaluator:
        return _EVALUATORS[self.reduction]

    def _pair(self, expected, actual) -> tuple[Matrix, Matrix]:
        e = as_matrix(expected)
        a = as_matrix(actual)
        if e.shape != a.shape:
            raise ShapeError(
                f"Expected and actual disagree: {e.rows}x{e.cols} vs {a.rows}x{a.cols}"
            )
        return e, a

    def node_costs(self, expected, actual) -> Matrix:
        e, a = self._pair(expected, actual)
        return Matrix(self.node_cost_function(e.array, a.array))

    def node_cost(self, expected, actual, i: int) -> float:
        e, a = self._pair(expected, actual)
        if not 0 <= i < e.rows:
            raise OutOfRangeError(f"Node index {i} out of range for a column of length {e.rows}")
        return float(self.node_cost_function(e.array[i, 0], a.array[i, 0]))

    def cost_derivative(self, expected, actual) -> Matrix:
        """dCost/dActual per node."""

        e, a = self._pair(expected, actual)
        return Matrix(self.node_cost_derivative(e.array, a.array))

    def cost(self, expected, actual) -> float:
        """Reduced cost of one data point (a column pair)."""

        e, a = self._pair(expected, actual)
        if not e.is_column:
            raise ShapeError(f"cost() compares columns, got {e.rows}x{e.cols}; use batch_cost()")
        return self.total_cost_evaluator(self.node_cost_function(e.array, a.array))

    def batch_costs(self, expected, actual) -> Array:
        """Per-column costs of an ``O x B`` pair."""

        e, a = self._pair(expected, actual)
        reducer = _REDUCERS[self.reduction]
        return np.asarray(reducer(self.node_cost_function(e.array, a.array), axis=0), dtype=np.float64)

    def batch_cost(self, expected, actual) -> float:
        """Mean over data points of the per-point cost."""

        return float(np.mean(self.batch_costs(expected, actual)))

    def distance(self, expected, actual) -> Matrix:
        e, a = self._pair(expected, actual)
        return e.subtract(a)

    def distance_cost(self, distance) -> float:
        return self.total_cost_evaluator(as_matrix(distance).array)


def learning_error(
    name: str,
    node_cost_function: NodeCostFn,
    node_cost_derivative: NodeCostFn,
    reduction: str = "mean",
) -> LearningError:
    return LearningError(name, node_cost_function, node_cost_derivative, reduction)


# ----------------------------------------------------------------------------
# Registry


class LearningErrorRegistry:
    """Central registry for learning errors."""

    def __init__(self) -> None:
        self._registry: Dict[str, LearningError] = {}

    def register(self, error: LearningError) -> None:
        self._registry[error.name] = error

    def get(self, name: str) -> LearningError:
        try:
            return self._registry[name]
        except KeyError:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}") from None

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str | LearningError, *, task_type: str) -> LearningError:
        if isinstance(name, LearningError):
            return name
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "multiclass":
                name = "cce"
            elif task_type == "binary":
                name = "bce"
            else:
                raise ValueError(f"Unknown task type: {task_type}")
        return self.get(name)


REGISTRY = LearningErrorRegistry()

mean_squared_error = learning_error("mse", squared_error, squared_error_derivative, "mean")
sum_squared_error = learning_error("sse", squared_error, squared_error_derivative, "sum")
binary_cross_entropy_error = learning_error(
    "bce", binary_cross_entropy, binary_cross_entropy_derivative, "mean"
)
categorical_cross_entropy_error = learning_error(
    "cce", categorical_cross_entropy, categorical_cross_entropy_derivative, "sum"
)

for _error in (
    mean_squared_error,
    sum_squared_error,
    binary_cross_entropy_error,
    categorical_cross_entropy_error,
):
    REGISTRY.register(_error)


def check_output_pairing(activation: ActivationFunction, error: LearningError) -> None:
    """Warn about output activation / cost pairings the trainer cannot differentiate."""

    if activation.name == "softmax" and error.node_cost_function is categorical_cross_entropy:
        warnings.warn(
            "softmax output with categorical cross-entropy is evaluated node-wise; "
            "the normalised softmax Jacobian is not applied",
            UserWarning,
            stacklevel=3,
        )


__all__ = [
    "LearningError",
    "LearningErrorRegistry",
    "REGISTRY",
    "binary_cross_entropy",
    "binary_cross_entropy_derivative",
    "binary_cross_entropy_error",
    "categorical_cross_entropy",
    "categorical_cross_entropy_derivative",
    "categorical_cross_entropy_error",
    "check_output_pairing",
    "learning_error",
    "mean_cost_evaluator",
    "mean_squared_error",
    "squared_error",
    "squared_error_derivative",
    "sum_cost_evaluator",
    "sum_squared_error",
]
