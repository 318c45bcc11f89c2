"""Gradient accumulators and the backpropagation recurrences."""

from __future__ import annotations

from typing import List

import numpy as np

from ..core.errors import OutOfRangeError, ShapeError, StateError
from ..core.matrix import Matrix, MutableMatrix
from ..core.network import Network
from ..core.types import ForwardTrace
from .losses import LearningError


class GradientData:
    """Per-layer gradient accumulators.

    ``weights`` and ``biases`` are the live parameters of layer
    ``layer_index`` (its incoming weight matrix and bias column); the
    optimizer mutates them in place. ``cost_differentials`` holds
    dCost/dSummedInput for the points seen last, one column per point.
    """

    def __init__(self, layer_index: int, weights: MutableMatrix, biases: MutableMatrix) -> None:
        if weights.rows != biases.rows or not biases.is_column:
            raise ShapeError(
                f"Layer {layer_index}: weights {weights.rows}x{weights.cols} do not match "
                f"biases {biases.rows}x{biases.cols}"
            )
        self.layer_index = layer_index
        self.weights = weights
        self.biases = biases
        self.weight_gradients = MutableMatrix.zeros(weights.rows, weights.cols)
        self.bias_gradients = MutableMatrix.zeros(biases.rows, 1)
        self.cost_differentials: Matrix = Matrix.zeros(biases.rows, 1)
        self.count = 0

    @classmethod
    def for_network(cls, network: Network) -> List["GradientData"]:
        """One accumulator per trainable layer, ordered by layer index."""

        return [
            cls(index, network.incoming_weights(index), network.layer(index).biases)
            for index in range(1, len(network))
        ]

    def worker_copy(self) -> "GradientData":
        """Fresh zeroed accumulators bound to the same live parameters."""

        return GradientData(self.layer_index, self.weights, self.biases)

    def accumulate(self, differentials: Matrix, previous_activations: Matrix) -> None:
        """Add the contribution of ``B`` points.

        ``differentials`` is ``N x B``; ``previous_activations`` is ``M x B``.
        """

        if differentials.rows != self.weights.rows or previous_activations.rows != self.weights.cols:
            raise ShapeError(
                f"Layer {self.layer_index}: cannot accumulate {differentials.rows}x{differentials.cols} "
                f"differentials against {previous_activations.rows}x{previous_activations.cols} activations"
            )
        if differentials.cols != previous_activations.cols:
            raise ShapeError("Differentials and activations cover different numbers of points")
        delta = differentials.array
        self.weight_gradients.add_in_place(Matrix(delta @ previous_activations.array.T))
        self.bias_gradients.add_in_place(Matrix(np.sum(delta, axis=1, keepdims=True)))
        self.cost_differentials = differentials
        self.count += differentials.cols

    def merge(self, other: "GradientData") -> None:
        if other.layer_index != self.layer_index:
            raise ShapeError(f"Cannot merge layer {other.layer_index} into layer {self.layer_index}")
        self.weight_gradients.add_in_place(other.weight_gradients)
        self.bias_gradients.add_in_place(other.bias_gradients)
        self.count += other.count

    def scale(self, factor: float) -> None:
        self.weight_gradients.scale_in_place(factor)
        self.bias_gradients.scale_in_place(factor)

    def reset(self) -> None:
        self.weight_gradients.fill(0.0)
        self.bias_gradients.fill(0.0)
        self.cost_differentials = Matrix.zeros(self.biases.rows, 1)
        self.count = 0

    def __repr__(self) -> str:
        return (
            f"GradientData(layer={self.layer_index}, "
            f"weights={self.weights.rows}x{self.weights.cols}, points={self.count})"
        )


# ----------------------------------------------------------------------------
# Backpropagation


def _summed(trace: ForwardTrace, index: int) -> Matrix:
    summed = trace.summed_inputs[index]
    if summed is None:
        raise StateError(f"Layer {index} has no summed inputs; run a forward pass first")
    return summed


def output_differential(
    network: Network, trace: ForwardTrace, expected: Matrix, learning_error: LearningError
) -> Matrix:
    """dCost/dSummedInput of the output layer: ``cost'(e, a) * f'(z)``."""

    last = network.last_index
    summed = _summed(trace, last)
    actual = trace.activations[last]
    cost_prime = learning_error.cost_derivative(expected, actual)
    slope = network.layer(last).activation.derivative(summed.array)
    return Matrix(cost_prime.array * slope)


def hidden_differential(
    network: Network, trace: ForwardTrace, layer_index: int, next_differentials: Matrix
) -> Matrix:
    """dCost/dSummedInput of hidden layer ``layer_index`` from layer ``layer_index + 1``."""

    if not 1 <= layer_index < network.last_index:
        raise OutOfRangeError(
            f"Hidden differentials exist for layers 1..{network.last_index - 1}, got {layer_index}"
        )
    summed = _summed(trace, layer_index)
    outgoing = network.outgoing_weights(layer_index)
    if next_differentials.rows != outgoing.rows or next_differentials.cols != summed.cols:
        raise ShapeError(
            f"Layer {layer_index + 1} differentials are {next_differentials.rows}x{next_differentials.cols}, "
            f"expected {outgoing.rows}x{summed.cols}"
        )
    back = outgoing.array.T @ next_differentials.array
    slope = network.layer(layer_index).activation.derivative(summed.array)
    return Matrix(slope * back)


def backpropagate(
    network: Network,
    trace: ForwardTrace,
    expected: Matrix,
    learning_error: LearningError,
    gradient_data: List[GradientData],
) -> None:
    """Walk the layers in reverse and add every layer's gradients.

    ``gradient_data[k]`` accumulates layer ``k + 1``.
    """

    if len(gradient_data) != network.last_index:
        raise ShapeError(
            f"Expected {network.last_index} gradient accumulators, got {len(gradient_data)}"
        )
    delta = output_differential(network, trace, expected, learning_error)
    for index in range(network.last_index, 0, -1):
        if index < network.last_index:
            delta = hidden_differential(network, trace, index, delta)
        gradient_data[index - 1].accumulate(delta, trace.activations[index - 1])


__all__ = [
    "GradientData",
    "backpropagate",
    "hidden_differential",
    "output_differential",
]
