"""Exception taxonomy shared by the matrix, network and trainer modules."""

from __future__ import annotations


class NetworkError(Exception):
    """Base class for errors raised by backpropnets."""


class ShapeError(NetworkError, ValueError):
    """Matrix or layer dimensions disagree."""


class OutOfRangeError(NetworkError, IndexError):
    """A row, column, node or layer index is outside its valid range."""


class StateError(NetworkError, RuntimeError):
    """Retained forward-pass state is missing."""


__all__ = ["NetworkError", "ShapeError", "OutOfRangeError", "StateError"]
