"""Core typing contracts for backpropnets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from .errors import ShapeError
from .matrix import Matrix, as_matrix

Array = np.ndarray


@dataclass(frozen=True)
class LabelledDataPoint:
    """A single ``(input, expected output)`` pair, both stored as columns."""

    input: Matrix
    output: Matrix

    def __post_init__(self) -> None:
        inp = as_matrix(self.input)
        out = as_matrix(self.output)
        if not inp.is_column or not out.is_column:
            raise ShapeError(
                f"Data points hold columns, got input {inp.rows}x{inp.cols} "
                f"and output {out.rows}x{out.cols}"
            )
        object.__setattr__(self, "input", inp)
        object.__setattr__(self, "output", out)

    @classmethod
    def of(cls, inputs: Sequence[float], outputs: Sequence[float]) -> "LabelledDataPoint":
        return cls(as_matrix(list(inputs)), as_matrix(list(outputs)))


@dataclass(frozen=True)
class ForwardTrace:
    """Per-layer activations and summed inputs of one forward pass.

    ``summed_inputs[0]`` is ``None``: the input layer has no summed input.
    """

    activations: List[Matrix]
    summed_inputs: List[Matrix | None]

    @property
    def output(self) -> Matrix:
        return self.activations[-1]


@dataclass(frozen=True)
class TrainResult:
    """Summary returned by :meth:`BackpropagationTrainer.train`."""

    epochs: int
    batches: int
    points: int
    history: List[Dict[str, float]] = field(default_factory=list)

    @property
    def final_cost(self) -> float:
        if not self.history:
            return float("nan")
        return float(self.history[-1]["cost"])


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`backpropnets.training.pipelines.run_pipeline`."""

    steps: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""


__all__ = ["Array", "ForwardTrace", "LabelledDataPoint", "RunResult", "TrainResult"]
