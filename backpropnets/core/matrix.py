"""Dimension-checked matrices backed by NumPy arrays.

Two flavours are provided.  :class:`Matrix` is immutable: its storage is a
read-only ``float64`` array and every operation returns a new matrix.
:class:`MutableMatrix` additionally exposes ``set`` and ``*_in_place``
operations that mutate its storage and return ``self``.

A matrix exclusively owns its storage.  Constructors copy their input and
``transpose``, ``row``, ``column``, ``without_row``, ``without_column``,
``freeze`` and ``to_numpy`` all return copies.  The only aliasing handle is
the :attr:`Matrix.array` property, a read-only view used by the numerical
code to avoid copies.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, Sequence

import numpy as np

from .errors import OutOfRangeError, ShapeError


def _as_grid(values: object) -> np.ndarray:
    if isinstance(values, Matrix):
        return np.array(values._data, dtype=np.float64)
    try:
        grid = np.array(values, dtype=np.float64)
    except ValueError as exc:
        raise ShapeError(f"Matrix rows must all have the same length ({exc})") from exc
    if grid.ndim != 2:
        raise ShapeError(f"Expected a 2-D grid of values, got {grid.ndim} dimension(s)")
    return grid


def _check_dims(grid: np.ndarray, rows: int | None, cols: int | None) -> None:
    actual_rows, actual_cols = grid.shape
    if actual_rows < 1 or actual_cols < 1:
        raise ShapeError(f"Matrix dimensions must be at least 1x1, got {actual_rows}x{actual_cols}")
    if rows is not None and rows != actual_rows:
        raise ShapeError(f"Declared {rows} rows but the grid has {actual_rows}")
    if cols is not None and cols != actual_cols:
        raise ShapeError(f"Declared {cols} columns but the grid has {actual_cols}")


class Matrix:
    """Immutable ``rows x cols`` grid of floats."""

    __slots__ = ("_data",)
    __hash__ = None  # type: ignore[assignment]

    def __init__(
        self,
        values: Sequence[Sequence[float]] | np.ndarray | "Matrix",
        rows: int | None = None,
        cols: int | None = None,
    ) -> None:
        grid = _as_grid(values)
        _check_dims(grid, rows, cols)
        self._data = grid
        self._seal()

    # ------------------------------------------------------------------
    # Construction helpers

    @classmethod
    def _from_array(cls, array: np.ndarray):
        obj = cls.__new__(cls)
        obj._data = np.array(array, dtype=np.float64)
        obj._seal()
        return obj

    def _seal(self) -> None:
        self._data.flags.writeable = False

    @classmethod
    def from_rows(
        cls,
        rows: Iterable["Matrix" | Sequence[float]],
        *,
        n_rows: int | None = None,
        n_cols: int | None = None,
    ):
        grid = [_flatten_vector(r) for r in rows]
        if not grid:
            raise ShapeError("Cannot build a matrix from zero rows")
        return cls(grid, n_rows, n_cols)

    @classmethod
    def from_columns(
        cls,
        columns: Iterable["Matrix" | Sequence[float]],
        *,
        n_rows: int | None = None,
        n_cols: int | None = None,
    ):
        vectors = [_flatten_vector(c) for c in columns]
        if not vectors:
            raise ShapeError("Cannot build a matrix from zero columns")
        lengths = {len(v) for v in vectors}
        if len(lengths) != 1:
            raise ShapeError(f"Columns have differing lengths: {sorted(lengths)}")
        grid = np.column_stack(vectors)
        _check_dims(grid, n_rows, n_cols)
        return cls._from_array(grid)

    @classmethod
    def zeros(cls, rows: int, cols: int):
        return cls.filled(rows, cols, 0.0)

    @classmethod
    def filled(cls, rows: int, cols: int, value: float):
        if rows < 1 or cols < 1:
            raise ShapeError(f"Matrix dimensions must be at least 1x1, got {rows}x{cols}")
        return cls._from_array(np.full((rows, cols), float(value)))

    @classmethod
    def identity(cls, n: int):
        if n < 1:
            raise ShapeError(f"Identity size must be at least 1, got {n}")
        return cls._from_array(np.eye(n))

    # ------------------------------------------------------------------
    # Shape and access

    @property
    def rows(self) -> int:
        return int(self._data.shape[0])

    @property
    def cols(self) -> int:
        return int(self._data.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    @property
    def is_column(self) -> bool:
        return self.cols == 1

    @property
    def is_row(self) -> bool:
        return self.rows == 1

    @property
    def array(self) -> np.ndarray:
        """Read-only view of the backing storage.

        The view aliases this matrix: for a :class:`MutableMatrix` it reflects
        later in-place updates.
        """

        view = self._data.view()
        view.flags.writeable = False
        return view

    def _check_row(self, i: int) -> None:
        if not 0 <= i < self.rows:
            raise OutOfRangeError(f"Row index {i} out of range for {self.rows} rows")

    def _check_col(self, j: int) -> None:
        if not 0 <= j < self.cols:
            raise OutOfRangeError(f"Column index {j} out of range for {self.cols} columns")

    def get(self, i: int, j: int = 0) -> float:
        self._check_row(i)
        self._check_col(j)
        return float(self._data[i, j])

    def row(self, i: int):
        self._check_row(i)
        return type(self)._from_array(self._data[i : i + 1, :])

    def column(self, j: int):
        self._check_col(j)
        return type(self)._from_array(self._data[:, j : j + 1])

    def iter_columns(self) -> Iterator["Matrix"]:
        for j in range(self.cols):
            yield self.column(j)

    # ------------------------------------------------------------------
    # Algebra

    def _check_same_shape(self, other: "Matrix", op: str) -> None:
        if self.shape != other.shape:
            raise ShapeError(f"Cannot {op} {self.rows}x{self.cols} and {other.rows}x{other.cols}")

    def add(self, other: "Matrix"):
        self._check_same_shape(other, "add")
        return type(self)._from_array(self._data + other._data)

    def subtract(self, other: "Matrix"):
        self._check_same_shape(other, "subtract")
        return type(self)._from_array(self._data - other._data)

    def hadamard(self, other: "Matrix"):
        """Elementwise product."""

        self._check_same_shape(other, "multiply elementwise")
        return type(self)._from_array(self._data * other._data)

    def scale(self, factor: float):
        return type(self)._from_array(self._data * float(factor))

    def multiply(self, other: "Matrix"):
        """Matrix product with shape ``(self.rows, other.cols)``."""

        if self.cols != other.rows:
            raise ShapeError(
                f"Cannot multiply {self.rows}x{self.cols} by {other.rows}x{other.cols}: "
                f"{self.cols} != {other.rows}"
            )
        return type(self)._from_array(self._data @ other._data)

    def add_to_columns(self, column: "Matrix"):
        """Add ``column`` to every column of this matrix."""

        if not column.is_column or column.rows != self.rows:
            raise ShapeError(
                f"Cannot broadcast a {column.rows}x{column.cols} matrix over "
                f"{self.rows}x{self.cols} columns"
            )
        return type(self)._from_array(self._data + column._data)

    def transpose(self):
        return type(self)._from_array(self._data.T)

    @property
    def T(self):
        return self.transpose()

    def map(self, fn: Callable[[float], float]):
        """Apply a scalar function to every entry."""

        mapped = np.vectorize(fn, otypes=[np.float64])(self._data)
        return type(self)._from_array(mapped)

    def apply(self, fn: Callable[[np.ndarray], np.ndarray]):
        """Apply an array-aware elementwise function to the whole grid."""

        result = np.asarray(fn(self._data), dtype=np.float64)
        if result.shape != self._data.shape:
            raise ShapeError(
                f"Function changed the shape from {self._data.shape} to {result.shape}"
            )
        return type(self)._from_array(result)

    def without_column(self, j: int):
        self._check_col(j)
        if self.cols == 1:
            raise ShapeError("Cannot remove the only column of a matrix")
        return type(self)._from_array(np.delete(self._data, j, axis=1))

    def without_row(self, i: int):
        self._check_row(i)
        if self.rows == 1:
            raise ShapeError("Cannot remove the only row of a matrix")
        return type(self)._from_array(np.delete(self._data, i, axis=0))

    def sum(self) -> float:
        return float(np.sum(self._data))

    def trace(self) -> float:
        self._require_square("trace")
        return float(np.trace(self._data))

    def determinant(self) -> float:
        self._require_square("determinant")
        return float(np.linalg.det(self._data))

    def _require_square(self, op: str) -> None:
        if self.rows != self.cols:
            raise ShapeError(f"{op} requires a square matrix, got {self.rows}x{self.cols}")

    # ------------------------------------------------------------------
    # Conversion and comparison

    def freeze(self) -> "Matrix":
        return Matrix._from_array(self._data)

    def to_numpy(self) -> np.ndarray:
        return np.array(self._data, copy=True)

    def tolist(self) -> list[list[float]]:
        return self._data.tolist()

    def allclose(self, other: "Matrix", *, rtol: float = 1e-7, atol: float = 1e-9) -> bool:
        if self.shape != other.shape:
            return False
        return bool(np.allclose(self._data, other._data, rtol=rtol, atol=atol))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._data, other._data))

    def __add__(self, other: "Matrix"):
        return self.add(other)

    def __sub__(self, other: "Matrix"):
        return self.subtract(other)

    def __matmul__(self, other: "Matrix"):
        return self.multiply(other)

    def __mul__(self, factor: float):
        if isinstance(factor, Matrix):
            return NotImplemented
        return self.scale(factor)

    __rmul__ = __mul__

    def __neg__(self):
        return self.scale(-1.0)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.rows}x{self.cols}, {self.tolist()})"


class MutableMatrix(Matrix):
    """Matrix whose entries can be updated in place."""

    __slots__ = ()

    def _seal(self) -> None:
        self._data.flags.writeable = True

    def set(self, i: int, j: int, value: float) -> "MutableMatrix":
        self._check_row(i)
        self._check_col(j)
        self._data[i, j] = float(value)
        return self

    def add_in_place(self, other: Matrix) -> "MutableMatrix":
        self._check_same_shape(other, "add")
        self._data += other._data
        return self

    def subtract_in_place(self, other: Matrix) -> "MutableMatrix":
        self._check_same_shape(other, "subtract")
        self._data -= other._data
        return self

    def scale_in_place(self, factor: float) -> "MutableMatrix":
        self._data *= float(factor)
        return self

    def map_in_place(self, fn: Callable[[float], float]) -> "MutableMatrix":
        self._data[...] = np.vectorize(fn, otypes=[np.float64])(self._data)
        return self

    def apply_in_place(self, fn: Callable[[np.ndarray], np.ndarray]) -> "MutableMatrix":
        result = np.asarray(fn(self._data), dtype=np.float64)
        if result.shape != self._data.shape:
            raise ShapeError(
                f"Function changed the shape from {self._data.shape} to {result.shape}"
            )
        self._data[...] = result
        return self

    def fill(self, value: float) -> "MutableMatrix":
        self._data.fill(float(value))
        return self

    def assign(self, other: Matrix) -> "MutableMatrix":
        """Overwrite every entry with the entries of ``other``."""

        self._check_same_shape(other, "assign")
        self._data[...] = other._data
        return self


def _flatten_vector(vector: Matrix | Sequence[float]) -> np.ndarray:
    if isinstance(vector, Matrix):
        if not (vector.is_row or vector.is_column):
            raise ShapeError(f"Expected a row or column, got {vector.rows}x{vector.cols}")
        return vector._data.reshape(-1)
    values = np.asarray(vector, dtype=np.float64)
    if values.ndim != 1:
        raise ShapeError(f"Expected a flat sequence of values, got {values.ndim} dimension(s)")
    return values


def column(values: Matrix | Sequence[float] | np.ndarray, *, mutable: bool = False) -> Matrix:
    """Build an ``n x 1`` column from a flat sequence."""

    flat = _flatten_vector(values)
    cls = MutableMatrix if mutable else Matrix
    if flat.size == 0:
        raise ShapeError("A column needs at least one entry")
    return cls._from_array(flat.reshape(-1, 1))


def row(values: Matrix | Sequence[float] | np.ndarray, *, mutable: bool = False) -> Matrix:
    """Build a ``1 x n`` row from a flat sequence."""

    flat = _flatten_vector(values)
    cls = MutableMatrix if mutable else Matrix
    if flat.size == 0:
        raise ShapeError("A row needs at least one entry")
    return cls._from_array(flat.reshape(1, -1))


def as_matrix(value: Matrix | Sequence[float] | Sequence[Sequence[float]] | np.ndarray) -> Matrix:
    """Coerce ``value`` to an immutable matrix; flat input becomes a column."""

    if isinstance(value, Matrix):
        return value.freeze()
    array = np.asarray(value, dtype=np.float64)
    if array.ndim == 1:
        return column(array)
    return Matrix(array)


__all__ = ["Matrix", "MutableMatrix", "as_matrix", "column", "row"]
