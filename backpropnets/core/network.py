"""Layer arena and forward propagation.

A :class:`Network` owns an ordered list of :class:`Layer` records (input
layer first) and a parallel list of weight matrices: ``weights[k]`` connects
layer ``k`` to layer ``k + 1`` and has shape
``(layers[k + 1].node_count, layers[k].node_count)``.  Layers never point at
each other; neighbours are reached by index through the network.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .activations import ActivationFunction, get_activation, linear
from .errors import OutOfRangeError, ShapeError, StateError
from .initializers import initialize_weights
from .matrix import Matrix, MutableMatrix, as_matrix
from .types import ForwardTrace


@dataclass
class Layer:
    """One layer record: node count, activation, biases and retained state."""

    index: int
    node_count: int
    activation: ActivationFunction
    biases: MutableMatrix
    activations: Matrix | None = None
    summed_inputs: Matrix | None = None

    def __post_init__(self) -> None:
        if self.node_count < 1:
            raise ShapeError(f"Layer {self.index} needs at least one node, got {self.node_count}")
        self.activation = get_activation(self.activation)
        biases = self.biases if isinstance(self.biases, MutableMatrix) else MutableMatrix(as_matrix(self.biases))
        if biases.shape != (self.node_count, 1):
            raise ShapeError(
                f"Layer {self.index} biases must be {self.node_count}x1, got {biases.rows}x{biases.cols}"
            )
        self.biases = biases

    @property
    def is_input(self) -> bool:
        return self.index == 0

    def clear_state(self) -> None:
        self.activations = None
        self.summed_inputs = None


class Network:
    """Feed-forward network: layers plus the weight matrices between them."""

    def __init__(self, layers: Sequence[Layer], weights: Sequence[Matrix]) -> None:
        layers = list(layers)
        if len(layers) < 2:
            raise ShapeError(f"A network needs at least an input and an output layer, got {len(layers)}")
        if len(weights) != len(layers) - 1:
            raise ShapeError(
                f"Expected {len(layers) - 1} weight matrices for {len(layers)} layers, got {len(weights)}"
            )
        for position, layer in enumerate(layers):
            if layer.index != position:
                raise ShapeError(f"Layer at position {position} carries index {layer.index}")
        live: List[MutableMatrix] = []
        for k, matrix in enumerate(weights):
            if not isinstance(matrix, Matrix):
                matrix = Matrix(matrix)
            expected = (layers[k + 1].node_count, layers[k].node_count)
            if matrix.shape != expected:
                raise ShapeError(
                    f"Weights {k} -> {k + 1} must be {expected[0]}x{expected[1]}, "
                    f"got {matrix.rows}x{matrix.cols}"
                )
            live.append(MutableMatrix(matrix))
        self._layers = tuple(layers)
        self._weights = live

    @classmethod
    def build(
        cls,
        sizes: Sequence[int],
        activations: Sequence[ActivationFunction | str] | ActivationFunction | str,
        weights: Sequence[Matrix] | None = None,
        biases: Sequence[Matrix] | None = None,
        *,
        seed: int | None = None,
    ) -> "Network":
        """Wire a chain of layers.

        ``activations`` names one activation per non-input layer, or a single
        activation shared by all of them. The input layer is linear. Missing
        weights are drawn with :func:`initialize_weights`; missing biases are
        zero.
        """

        sizes = [int(s) for s in sizes]
        if len(sizes) < 2:
            raise ShapeError(f"A network needs at least two layer sizes, got {sizes}")
        if isinstance(activations, (str, ActivationFunction)):
            activations = [activations] * (len(sizes) - 1)
        if len(activations) != len(sizes) - 1:
            raise ShapeError(
                f"Expected {len(sizes) - 1} activations (one per non-input layer), got {len(activations)}"
            )
        if biases is not None and len(biases) != len(sizes) - 1:
            raise ShapeError(f"Expected {len(sizes) - 1} bias columns, got {len(biases)}")
        resolved = [linear] + [get_activation(a) for a in activations]

        layers: List[Layer] = []
        for index, (size, activation) in enumerate(zip(sizes, resolved)):
            if index > 0 and biases is not None:
                layer_biases = MutableMatrix(as_matrix(biases[index - 1]))
            else:
                layer_biases = MutableMatrix.zeros(size, 1)
            layers.append(Layer(index, size, activation, layer_biases))

        if weights is None:
            rng = np.random.default_rng(seed)
            weights = [
                initialize_weights(sizes[k], sizes[k + 1], resolved[k + 1], rng)
                for k in range(len(sizes) - 1)
            ]
        return cls(layers, weights)

    # ------------------------------------------------------------------
    # Structure

    @property
    def layers(self) -> tuple[Layer, ...]:
        return self._layers

    @property
    def weights(self) -> tuple[MutableMatrix, ...]:
        """Live weight matrices; ``weights[k]`` feeds layer ``k + 1``."""

        return tuple(self._weights)

    @property
    def sizes(self) -> List[int]:
        return [layer.node_count for layer in self._layers]

    @property
    def last_index(self) -> int:
        return len(self._layers) - 1

    @property
    def input_size(self) -> int:
        return self._layers[0].node_count

    @property
    def output_size(self) -> int:
        return self._layers[-1].node_count

    @property
    def output_layer(self) -> Layer:
        return self._layers[-1]

    def __len__(self) -> int:
        return len(self._layers)

    def layer(self, index: int) -> Layer:
        if not 0 <= index <= self.last_index:
            raise OutOfRangeError(f"Layer index {index} out of range for {len(self._layers)} layers")
        return self._layers[index]

    def incoming_weights(self, index: int) -> MutableMatrix:
        if not 1 <= index <= self.last_index:
            raise OutOfRangeError(f"Layer {index} has no incoming weights (valid: 1..{self.last_index})")
        return self._weights[index - 1]

    def outgoing_weights(self, index: int) -> MutableMatrix:
        if not 0 <= index < self.last_index:
            raise OutOfRangeError(
                f"Layer {index} has no outgoing weights (valid: 0..{self.last_index - 1})"
            )
        return self._weights[index]

    def parameter_count(self) -> int:
        weights = sum(w.rows * w.cols for w in self._weights)
        biases = sum(layer.node_count for layer in self._layers[1:])
        return int(weights + biases)

    # ------------------------------------------------------------------
    # Forward propagation

    def _coerce_input(self, inputs) -> Matrix:
        matrix = as_matrix(inputs)
        if matrix.rows != self.input_size:
            raise ShapeError(
                f"Input has {matrix.rows} rows but the input layer has {self.input_size} nodes"
            )
        return matrix

    def propagate(self, inputs) -> ForwardTrace:
        """Run a forward pass without touching layer state.

        ``inputs`` is an ``I x B`` matrix, one column per data point.
        """

        current = self._coerce_input(inputs)
        activations: List[Matrix] = [current]
        summed: List[Matrix | None] = [None]
        for k in range(1, len(self._layers)):
            layer = self._layers[k]
            z = self._weights[k - 1].array @ current.array + layer.biases.array
            summed_k = Matrix(z)
            current = Matrix(layer.activation.calculate(summed_k.array))
            summed.append(summed_k)
            activations.append(current)
        return ForwardTrace(activations=activations, summed_inputs=summed)

    def forward(self, inputs) -> Matrix:
        """Forward pass that retains every layer's activations and summed inputs."""

        trace = self.propagate(inputs)
        for layer, acts, summed in zip(self._layers, trace.activations, trace.summed_inputs):
            layer.activations = acts
            layer.summed_inputs = summed
        return trace.output

    def predict(self, inputs) -> Matrix:
        return self.propagate(inputs).output

    def trace(self) -> ForwardTrace:
        """Return the state retained by the last :meth:`forward` call."""

        if self._layers[-1].summed_inputs is None:
            raise StateError("No forward pass has been run on this network")
        return ForwardTrace(
            activations=[layer.activations for layer in self._layers],
            summed_inputs=[layer.summed_inputs for layer in self._layers],
        )

    def summed_inputs(self, index: int) -> Matrix:
        layer = self.layer(index)
        if layer.summed_inputs is None:
            raise StateError(f"Layer {index} has no summed inputs; run a forward pass first")
        return layer.summed_inputs

    def clear_state(self) -> None:
        for layer in self._layers:
            layer.clear_state()

    def __repr__(self) -> str:
        acts = ", ".join(layer.activation.name for layer in self._layers[1:])
        return f"Network(sizes={self.sizes}, activations=[{acts}])"


__all__ = ["Layer", "Network"]
