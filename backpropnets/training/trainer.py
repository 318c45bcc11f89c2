"""Mini-batch backpropagation training loop."""

from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np

from ..core.errors import ShapeError
from ..core.initializers import initialize_weights
from ..core.matrix import Matrix, MutableMatrix
from ..core.network import Network
from ..core.types import LabelledDataPoint, TrainResult
from .batching import BatchStream
from .gradients import GradientData, backpropagate
from .losses import LearningError, check_output_pairing
from .optimizers import GradientDescent
from .problems import ProblemSpecification

Initializer = Callable[[int, int, object, np.random.Generator], MutableMatrix]
DataSource = Union[Callable[[], Iterable[LabelledDataPoint]], Iterable[LabelledDataPoint]]


def stack_batch(batch: Sequence[LabelledDataPoint]) -> Tuple[Matrix, Matrix]:
    """Stack a batch into ``I x B`` inputs and ``O x B`` expected outputs."""

    if not batch:
        raise ValueError("Cannot stack an empty batch")
    first = batch[0]
    for point in batch[1:]:
        if point.input.shape != first.input.shape or point.output.shape != first.output.shape:
            raise ShapeError(
                f"Data point shapes differ within a batch: input {point.input.shape} vs "
                f"{first.input.shape}, output {point.output.shape} vs {first.output.shape}"
            )
    inputs = np.hstack([point.input.array for point in batch])
    outputs = np.hstack([point.output.array for point in batch])
    return Matrix(inputs), Matrix(outputs)


def _chunks(batch: Sequence[LabelledDataPoint], parts: int) -> List[Sequence[LabelledDataPoint]]:
    parts = max(1, min(parts, len(batch)))
    size, extra = divmod(len(batch), parts)
    chunks = []
    start = 0
    for idx in range(parts):
        stop = start + size + (1 if idx < extra else 0)
        chunks.append(batch[start:stop])
        start = stop
    return chunks


class BackpropagationTrainer:
    """Train a :class:`Network` with backpropagation and gradient descent."""

    def __init__(
        self,
        optimizer: GradientDescent,
        initializer: Initializer = initialize_weights,
        seed: int = 0,
        workers: int = 1,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.optimizer = optimizer
        self.initializer = initializer
        self.seed = seed
        self.workers = workers
        self.callbacks = list(callbacks or [])

    # ------------------------------------------------------------------
    # Public API

    def initialize(self, network: Network) -> None:
        """Redraw every weight matrix, keyed on the receiving layer's activation."""

        rng = np.random.default_rng(self.seed)
        for index in range(1, len(network)):
            layer = network.layer(index)
            drawn = self.initializer(
                network.layer(index - 1).node_count, layer.node_count, layer.activation, rng
            )
            network.incoming_weights(index).assign(drawn)

    def train(
        self,
        problem: ProblemSpecification,
        network: Network,
        data: DataSource,
        batch_size: int,
        epochs: int,
        learning_error: LearningError | None = None,
        options_override=None,
        *,
        randomize: bool = True,
    ) -> TrainResult:
        if network.input_size != problem.input_size or network.output_size != problem.output_size:
            raise ShapeError(
                f"Network maps {network.input_size} -> {network.output_size} but the problem "
                f"expects {problem.input_size} -> {problem.output_size}"
            )
        if epochs < 0:
            raise ValueError(f"epochs must be >= 0, got {epochs}")
        if batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {batch_size}")
        learning_error = learning_error or problem.error
        check_output_pairing(network.output_layer.activation, learning_error)

        gradient_data = GradientData.for_network(network)
        self._set_seed(self.seed)
        if randomize:
            self.initialize(network)

        history: List[Dict[str, float]] = []
        total_batches = 0
        total_points = 0
        for epoch in range(1, epochs + 1):
            costs: List[float] = []
            points = 0
            for batch in BatchStream(self._epoch_source(data), batch_size):
                costs.append(
                    self.learn_batch(network, gradient_data, learning_error, batch, options_override)
                )
                points += len(batch)
            if not costs:
                raise ValueError(f"Data source produced no points in epoch {epoch}")
            metrics = {
                "epoch": epoch,
                "cost": float(np.mean(costs)),
                "batches": len(costs),
                "points": points,
            }
            total_batches += len(costs)
            total_points += points
            history.append(metrics)
            self._emit_epoch(epoch, metrics)

        return TrainResult(epochs=epochs, batches=total_batches, points=total_points, history=history)

    def learn_batch(
        self,
        network: Network,
        gradient_data: List[GradientData],
        learning_error: LearningError,
        batch: Sequence[LabelledDataPoint],
        options_override=None,
    ) -> float:
        """One optimisation step; returns the batch's mean cost before the update."""

        if not batch:
            raise ValueError("Cannot learn from an empty batch")
        for data in gradient_data:
            data.reset()
        cost = self._accumulate(network, list(batch), learning_error, gradient_data)
        for data in gradient_data:
            data.scale(1.0 / len(batch))
        for data in gradient_data:
            self.optimizer.update_weights_and_biases(data.layer_index, data, options_override)
        for data in gradient_data:
            data.reset()
        return cost

    def compute_gradients(
        self,
        network: Network,
        batch: Sequence[LabelledDataPoint],
        learning_error: LearningError,
    ) -> List[GradientData]:
        """Batch-averaged gradients without updating the network."""

        if not batch:
            raise ValueError("Cannot compute gradients of an empty batch")
        gradient_data = GradientData.for_network(network)
        self._accumulate(network, list(batch), learning_error, gradient_data)
        for data in gradient_data:
            data.scale(1.0 / len(batch))
        return gradient_data

    # ------------------------------------------------------------------
    # Internal helpers

    def _accumulate(
        self,
        network: Network,
        batch: List[LabelledDataPoint],
        learning_error: LearningError,
        gradient_data: List[GradientData],
    ) -> float:
        if self.workers == 1 or len(batch) < 2:
            inputs, expected = stack_batch(batch)
            network.forward(inputs)
            trace = network.trace()
            backpropagate(network, trace, expected, learning_error, gradient_data)
            return learning_error.batch_cost(expected, trace.output)

        chunks = _chunks(batch, self.workers)

        def work(chunk: Sequence[LabelledDataPoint]) -> Tuple[List[GradientData], float]:
            local = [data.worker_copy() for data in gradient_data]
            inputs, expected = stack_batch(chunk)
            trace = network.propagate(inputs)
            backpropagate(network, trace, expected, learning_error, local)
            return local, float(np.sum(learning_error.batch_costs(expected, trace.output)))

        with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
            results = list(pool.map(work, chunks))
        total = 0.0
        for local, cost_sum in results:
            for data, partial in zip(gradient_data, local):
                data.merge(partial)
            total += cost_sum
        return total / len(batch)

    @staticmethod
    def _epoch_source(data: DataSource) -> Iterable[LabelledDataPoint]:
        if callable(data):
            return data()
        return data

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    @staticmethod
    def _set_seed(seed: int) -> None:
        random.seed(seed)
        np.random.seed(seed)


__all__ = ["BackpropagationTrainer", "stack_batch"]
