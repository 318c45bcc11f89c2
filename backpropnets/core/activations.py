"""Catalog of elementwise activation functions and their derivatives."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, Dict, List

import numpy as np

from .types import Array

ElementwiseFn = Callable[[Array], Array]

SELU_SCALE = 1.0507009873554804934193349852946
LEAKY_SLOPE = 0.01
SHRINK_THRESHOLD = 0.5


def _elementwise(fn: Callable[[Array], Array]) -> ElementwiseFn:
    """Accept floats or arrays; floats in, float out."""

    @functools.wraps(fn)
    def wrapper(x):
        values = np.asarray(x, dtype=np.float64)
        with np.errstate(over="ignore", invalid="ignore"):
            result = np.asarray(fn(values), dtype=np.float64)
        if result.shape != values.shape:
            result = np.broadcast_to(result, values.shape).copy()
        if values.ndim == 0:
            return float(result)
        return result

    return wrapper


@dataclass(frozen=True)
class ActivationFunction:
    """Named ``(calculate, derivative)`` pair."""

    name: str
    calculate: ElementwiseFn
    derivative: ElementwiseFn

    def __call__(self, x):
        return self.calculate(x)

    def __repr__(self) -> str:
        return f"ActivationFunction({self.name!r})"


# ----------------------------------------------------------------------------
# Closed forms


@_elementwise
def _sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


@_elementwise
def _sigmoid_prime(x: Array) -> Array:
    s = _sigmoid(x)
    return s * (1.0 - s)


@_elementwise
def _tanh_prime(x: Array) -> Array:
    return 1.0 - np.tanh(x) ** 2


@_elementwise
def _relu(x: Array) -> Array:
    return np.maximum(x, 0.0)


@_elementwise
def _relu_prime(x: Array) -> Array:
    return np.where(x > 0, 1.0, 0.0)


@_elementwise
def _leaky_relu(x: Array) -> Array:
    return np.where(x > 0, x, LEAKY_SLOPE * x)


@_elementwise
def _leaky_relu_prime(x: Array) -> Array:
    return np.where(x > 0, 1.0, LEAKY_SLOPE)


@_elementwise
def _ones(x: Array) -> Array:
    return np.ones_like(x)


@_elementwise
def _softplus(x: Array) -> Array:
    return np.logaddexp(0.0, x)


@_elementwise
def _hard_sigmoid(x: Array) -> Array:
    return np.clip(0.2 * x + 0.5, 0.0, 1.0)


@_elementwise
def _hard_sigmoid_prime(x: Array) -> Array:
    return np.where((x > -2.5) & (x < 2.5), 0.2, 0.0)


@_elementwise
def _elu(x: Array) -> Array:
    return np.where(x > 0, x, np.expm1(x))


@_elementwise
def _elu_prime(x: Array) -> Array:
    return np.where(x > 0, 1.0, np.exp(x))


@_elementwise
def _selu(x: Array) -> Array:
    return SELU_SCALE * np.where(x > 0, x, np.expm1(x))


@_elementwise
def _selu_prime(x: Array) -> Array:
    return SELU_SCALE * np.where(x > 0, 1.0, np.exp(x))


@_elementwise
def _soft_exponential(x: Array) -> Array:
    return np.where(x > 0, np.exp(-x), -np.exp(x))


@_elementwise
def _soft_exponential_prime(x: Array) -> Array:
    return np.where(x > 0, -np.exp(-x), -np.exp(x))


@_elementwise
def _soft_shrink(x: Array) -> Array:
    return np.where(
        x > SHRINK_THRESHOLD,
        x - SHRINK_THRESHOLD,
        np.where(x < -SHRINK_THRESHOLD, x + SHRINK_THRESHOLD, 0.0),
    )


@_elementwise
def _shrink_prime(x: Array) -> Array:
    return np.where(np.abs(x) > SHRINK_THRESHOLD, 1.0, 0.0)


@_elementwise
def _hard_shrink(x: Array) -> Array:
    return np.where(np.abs(x) > SHRINK_THRESHOLD, x, 0.0)


@_elementwise
def _soft_sign(x: Array) -> Array:
    return x / (1.0 + np.abs(x))


@_elementwise
def _soft_sign_prime(x: Array) -> Array:
    return 1.0 / (1.0 + np.abs(x)) ** 2


@_elementwise
def _hard_tanh(x: Array) -> Array:
    return np.clip(x, -1.0, 1.0)


@_elementwise
def _hard_tanh_prime(x: Array) -> Array:
    return np.where((x > -1.0) & (x < 1.0), 1.0, 0.0)


# ----------------------------------------------------------------------------
# Catalog

sigmoid = ActivationFunction("sigmoid", _sigmoid, _sigmoid_prime)
tanh = ActivationFunction("tanh", _elementwise(np.tanh), _tanh_prime)
relu = ActivationFunction("relu", _relu, _relu_prime)
leaky_relu = ActivationFunction("leakyRelu", _leaky_relu, _leaky_relu_prime)
linear = ActivationFunction("linear", _elementwise(np.array), _ones)
# Node-wise exponential; normalisation across the layer is not applied.
softmax = ActivationFunction("softmax", _elementwise(np.exp), _ones)
softplus = ActivationFunction("softplus", _softplus, _sigmoid)
hard_sigmoid = ActivationFunction("hardSigmoid", _hard_sigmoid, _hard_sigmoid_prime)
elu = ActivationFunction("elu", _elu, _elu_prime)
selu = ActivationFunction("selu", _selu, _selu_prime)
soft_exponential = ActivationFunction("softExponential", _soft_exponential, _soft_exponential_prime)
soft_shrink = ActivationFunction("softShrink", _soft_shrink, _shrink_prime)
soft_sign = ActivationFunction("softSign", _soft_sign, _soft_sign_prime)
hard_tanh = ActivationFunction("hardTanh", _hard_tanh, _hard_tanh_prime)
hard_shrink = ActivationFunction("hardShrink", _hard_shrink, _shrink_prime)

CATALOG: Dict[str, ActivationFunction] = {
    fn.name: fn
    for fn in (
        sigmoid,
        tanh,
        relu,
        leaky_relu,
        linear,
        softmax,
        softplus,
        hard_sigmoid,
        elu,
        selu,
        soft_exponential,
        soft_shrink,
        soft_sign,
        hard_tanh,
        hard_shrink,
    )
}


def _normalise(name: str) -> str:
    return name.replace("_", "").replace("-", "").lower()


_LOOKUP: Dict[str, ActivationFunction] = {_normalise(key): fn for key, fn in CATALOG.items()}


def available_activations() -> List[str]:
    return list(CATALOG)


def get_activation(name: str | ActivationFunction) -> ActivationFunction:
    """Resolve an activation by catalog name (``leaky_relu`` == ``leakyRelu``)."""

    if isinstance(name, ActivationFunction):
        return name
    try:
        return _LOOKUP[_normalise(name)]
    except KeyError:
        available = ", ".join(CATALOG)
        raise KeyError(f"Unknown activation {name!r}. Available activations: {available}") from None


__all__ = [
    "ActivationFunction",
    "CATALOG",
    "available_activations",
    "get_activation",
    "sigmoid",
    "tanh",
    "relu",
    "leaky_relu",
    "linear",
    "softmax",
    "softplus",
    "hard_sigmoid",
    "elu",
    "selu",
    "soft_exponential",
    "soft_shrink",
    "soft_sign",
    "hard_tanh",
    "hard_shrink",
]
