"""backpropnets public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import NetworkError, OutOfRangeError, ShapeError, StateError
from .core.matrix import Matrix, MutableMatrix, column, row
from .core.network import Layer, Network
from .training.optimizers import GradientDescent, GradientDescentOptions, gradient_descent
from .training.pipelines import load_preset, presets, run_pipeline
from .training.problems import classification_problem, regression_problem
from .training.trainer import BackpropagationTrainer

__all__ = [
    "BackpropagationTrainer",
    "GradientDescent",
    "GradientDescentOptions",
    "Layer",
    "Matrix",
    "MutableMatrix",
    "Network",
    "NetworkError",
    "OutOfRangeError",
    "ShapeError",
    "StateError",
    "activations",
    "classification_problem",
    "column",
    "gradient_descent",
    "load_preset",
    "presets",
    "regression_problem",
    "row",
    "run_pipeline",
    "types",
]
