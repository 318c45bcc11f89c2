"""Gradient-descent family: plain, momentum and L2-regularised updates."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Tuple

from ..core.matrix import Matrix, MutableMatrix
from .gradients import GradientData


@dataclass(frozen=True)
class GradientDescentOptions:
    """Learning rate plus optional momentum and L2 regularisation."""

    learning_rate: float
    momentum: float | None = None
    regularization: float | None = None

    def __post_init__(self) -> None:
        if self.learning_rate is None or self.learning_rate < 0:
            raise ValueError(f"learning_rate must be >= 0, got {self.learning_rate}")
        if self.momentum is not None and not 0.0 <= self.momentum <= 1.0:
            raise ValueError(f"momentum must lie in [0, 1], got {self.momentum}")
        if self.regularization is not None and self.regularization < 0:
            raise ValueError(f"regularization must be >= 0, got {self.regularization}")

    @property
    def kind(self) -> str:
        if self.momentum is not None and self.regularization is not None:
            return "regularized_momentum"
        if self.momentum is not None:
            return "momentum"
        if self.regularization is not None:
            return "regularized"
        return "plain"

    @property
    def decay(self) -> float:
        """Weight multiplier ``1 - learning_rate * regularization``."""

        return 1.0 - self.learning_rate * (self.regularization or 0.0)

    def with_overrides(
        self, override: "GradientDescentOptions | Mapping[str, float | None] | None"
    ) -> "GradientDescentOptions":
        """Return a copy with ``override`` applied field by field."""

        if override is None:
            return self
        if isinstance(override, GradientDescentOptions):
            changes = {
                f.name: getattr(override, f.name)
                for f in dataclasses.fields(override)
                if getattr(override, f.name) is not None
            }
        else:
            known = {f.name for f in dataclasses.fields(self)}
            unknown = sorted(set(override) - known)
            if unknown:
                raise KeyError(f"Unknown optimizer option(s): {', '.join(unknown)}")
            changes = dict(override)
        return dataclasses.replace(self, **changes)


def _zeros_like(matrix: Matrix) -> MutableMatrix:
    return MutableMatrix.zeros(matrix.rows, matrix.cols)


class GradientDescent:
    """Apply averaged gradients to live weights and biases.

    Velocities for the momentum variants are keyed by layer index and live as
    long as the optimizer.
    """

    def __init__(self, options: GradientDescentOptions) -> None:
        self.options = options
        self._velocities: Dict[int, Tuple[MutableMatrix, MutableMatrix]] = {}

    def effective_options(self, option_override=None) -> GradientDescentOptions:
        return self.options.with_overrides(option_override)

    def velocities(self, layer_index: int) -> Tuple[Matrix, Matrix] | None:
        pair = self._velocities.get(layer_index)
        if pair is None:
            return None
        return pair[0].freeze(), pair[1].freeze()

    def reset_velocities(self) -> None:
        self._velocities.clear()

    def _velocity(self, gradient_data: GradientData) -> Tuple[MutableMatrix, MutableMatrix]:
        pair = self._velocities.get(gradient_data.layer_index)
        if pair is None or pair[0].shape != gradient_data.weights.shape:
            pair = (_zeros_like(gradient_data.weights), _zeros_like(gradient_data.biases))
            self._velocities[gradient_data.layer_index] = pair
        return pair

    def update_weights_and_biases(
        self,
        layer_index: int,
        gradient_data: GradientData,
        option_override=None,
    ) -> None:
        if gradient_data.layer_index != layer_index:
            raise ValueError(
                f"Gradient data belongs to layer {gradient_data.layer_index}, not {layer_index}"
            )
        opts = self.effective_options(option_override)
        lr = opts.learning_rate
        decay = opts.decay
        w = gradient_data.weights.array
        b = gradient_data.biases.array
        grad_w = gradient_data.weight_gradients.array
        grad_b = gradient_data.bias_gradients.array

        if opts.momentum is None:
            new_w = decay * w - lr * grad_w
            new_b = b - lr * grad_b
        else:
            vel_w, vel_b = self._velocity(gradient_data)
            vel_w.assign(Matrix(opts.momentum * vel_w.array - lr * grad_w))
            vel_b.assign(Matrix(opts.momentum * vel_b.array - lr * grad_b))
            new_w = decay * w + vel_w.array
            new_b = b + vel_b.array

        gradient_data.weights.assign(Matrix(new_w))
        gradient_data.biases.assign(Matrix(new_b))

    def step(self, gradient_data: Iterable[GradientData], option_override=None) -> None:
        for data in gradient_data:
            self.update_weights_and_biases(data.layer_index, data, option_override)


def gradient_descent(
    learning_rate: float,
    momentum: float | None = None,
    regularization: float | None = None,
) -> GradientDescent:
    return GradientDescent(GradientDescentOptions(learning_rate, momentum, regularization))


__all__ = ["GradientDescent", "GradientDescentOptions", "gradient_descent"]
