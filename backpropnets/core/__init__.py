"""Core numerical primitives for backpropnets."""

from . import activations, errors, initializers, matrix, network, types

__all__ = ["activations", "errors", "initializers", "matrix", "network", "types"]
