"""Weight initialisation keyed on the receiving layer's activation."""

from __future__ import annotations

import re

import numpy as np

from .activations import ActivationFunction, get_activation
from .errors import ShapeError
from .matrix import MutableMatrix

_XAVIER_NORMALISED = re.compile(r"sigmoid|tanh", re.IGNORECASE)
_HE = re.compile(r"elu|leakyrelu|relu|selu|softplus|softsign", re.IGNORECASE)


def he_scale(fan_in: int) -> float:
    return float(np.sqrt(2.0 / fan_in))


def scheme_for(activation: ActivationFunction | str) -> str:
    """Return ``"he"``, ``"normalized_xavier"`` or ``"xavier"`` for an activation."""

    name = get_activation(activation).name
    # hardSigmoid/hardTanh share the sigmoid/tanh regime.
    if _XAVIER_NORMALISED.search(name):
        return "normalized_xavier"
    if _HE.search(name):
        return "he"
    return "xavier"


def initialize_weights(
    input_size: int,
    output_size: int,
    activation: ActivationFunction | str,
    rng: np.random.Generator | None = None,
) -> MutableMatrix:
    """Draw an ``output_size x input_size`` weight matrix.

    He: normal with std ``sqrt(2 / fan_in)``. Normalised Xavier: uniform on
    ``+-sqrt(6) / sqrt(fan_in + fan_out)``. Xavier: uniform on
    ``+-1 / sqrt(fan_in)``.
    """

    if input_size < 1 or output_size < 1:
        raise ShapeError(f"Layer sizes must be positive, got {input_size} -> {output_size}")
    rng = rng if rng is not None else np.random.default_rng()
    shape = (output_size, input_size)
    scheme = scheme_for(activation)
    if scheme == "he":
        values = rng.normal(0.0, he_scale(input_size), size=shape)
    elif scheme == "normalized_xavier":
        bound = np.sqrt(6.0) / np.sqrt(input_size + output_size)
        values = rng.uniform(-bound, bound, size=shape)
    else:
        bound = 1.0 / np.sqrt(input_size)
        values = rng.uniform(-bound, bound, size=shape)
    return MutableMatrix(values)


__all__ = ["initialize_weights", "scheme_for"]
