"""Dense row-major matrix container shared by every backend.

A ``DenseMatrix`` owns a flat, contiguous NumPy array; element (r, c) lives at
flat index ``r * cols + c``. Vectors are the degenerate 1 x n (or n x 1) case.
The element buffer is always a private copy so one backend can never mutate
another backend's operands.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import (
    DimensionMismatch,
    IndexOutOfBounds,
    LayoutIncompatible,
    LengthMismatch,
    ShapeMismatch,
)

# Fixed-size numeric kinds: signed/unsigned int, float, complex.
_NUMERIC_KINDS = "iufc"


def check_layout(dtype: Any) -> np.dtype:
    """Return ``dtype`` as a NumPy dtype if it can be stored flat without indirection."""
    try:
        dt = np.dtype(dtype)
    except TypeError as exc:
        raise LayoutIncompatible(f"not a numeric element type: {dtype!r}") from exc
    if dt.kind not in _NUMERIC_KINDS or dt.fields is not None or dt.hasobject:
        raise LayoutIncompatible(f"element type {dt} is not a fixed-size numeric scalar")
    return dt


class DenseMatrix:
    """Flat row-major numeric container with bounds-checked 2D addressing."""

    __slots__ = ("_rows", "_cols", "_elems")

    def __init__(self, rows: int, cols: int, elements: Sequence[Any], dtype: Any = None):
        rows = int(rows)
        cols = int(cols)
        if rows < 1 or cols < 1:
            raise ShapeMismatch(f"rows and cols must be >= 1, got {rows}x{cols}")
        arr = np.array(elements, dtype=dtype, copy=True)
        check_layout(arr.dtype)
        arr = np.ascontiguousarray(arr.reshape(-1))
        if arr.size != rows * cols:
            raise ShapeMismatch(f"no. of elements ({arr.size}) must equal rows * cols ({rows} * {cols})")
        self._rows = rows
        self._cols = cols
        self._elems = arr

    # --- constructors ----------------------------------------------------------
    @classmethod
    def zeros(cls, rows: int, cols: int, dtype: Any = np.float32) -> "DenseMatrix":
        dt = check_layout(dtype)
        return cls(rows, cols, np.zeros(max(int(rows), 0) * max(int(cols), 0), dtype=dt))

    @classmethod
    def vector(cls, elements: Sequence[Any], dtype: Any = None) -> "DenseMatrix":
        """Build a 1 x n row vector."""
        arr = np.array(elements, dtype=dtype).reshape(-1)
        return cls(1, arr.size, arr)

    @classmethod
    def from_numpy(cls, array: Any) -> "DenseMatrix":
        """Build from a 1-D (row vector) or 2-D array-like."""
        arr = np.asarray(array)
        if arr.ndim == 1:
            return cls(1, arr.shape[0], arr)
        if arr.ndim == 2:
            return cls(arr.shape[0], arr.shape[1], arr)
        raise ShapeMismatch(f"expected a 1-D or 2-D array, got {arr.ndim} dimensions")

    # --- shape -----------------------------------------------------------------
    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self) -> Tuple[int, int]:
        return (self._rows, self._cols)

    @property
    def dtype(self) -> np.dtype:
        return self._elems.dtype

    @property
    def nbytes(self) -> int:
        return int(self._elems.nbytes)

    @property
    def elements(self) -> np.ndarray:
        """Read-only flat view of the element buffer."""
        view = self._elems.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return self._elems.size

    def is_square(self) -> bool:
        return self._rows == self._cols

    def is_vector(self) -> bool:
        return self._rows == 1 or self._cols == 1

    # --- addressing ------------------------------------------------------------
    def _flat_index(self, row: int, col: int) -> int:
        if row < 0 or col < 0 or row >= self._rows or col >= self._cols:
            raise IndexOutOfBounds(f"index ({row}, {col}) out of bounds for {self._rows}x{self._cols} matrix")
        return row * self._cols + col

    def get(self, row: int, col: int) -> Any:
        return self._elems[self._flat_index(row, col)]

    def set(self, row: int, col: int, value: Any) -> None:
        self._elems[self._flat_index(row, col)] = value

    def __getitem__(self, index: Tuple[int, int]) -> Any:
        row, col = index
        return self.get(row, col)

    def __setitem__(self, index: Tuple[int, int], value: Any) -> None:
        row, col = index
        self.set(row, col, value)

    # --- conversion / comparison ----------------------------------------------
    def to_numpy(self) -> np.ndarray:
        """Return a (rows, cols) copy."""
        return self._elems.reshape(self._rows, self._cols).copy()

    def tolist(self) -> list:
        return self.to_numpy().tolist()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DenseMatrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._elems, other._elems))

    __hash__ = None  # type: ignore[assignment]

    def __matmul__(self, other: "DenseMatrix") -> "DenseMatrix":
        from .backends.sequential import SequentialKernel

        return SequentialKernel().matmul(self, other)

    def __repr__(self) -> str:
        if self._elems.size <= 8:
            body = self._elems.tolist()
        else:
            body = f"{self._elems[:3].tolist()} ... {self._elems[-3:].tolist()}"
        return f"DenseMatrix({self._rows}x{self._cols}, dtype={self.dtype}, elements={body})"


MatrixLike = Union[DenseMatrix, np.ndarray, Sequence[Any]]


def as_matrix(value: MatrixLike, dtype: Any = None) -> DenseMatrix:
    """Coerce an operand: DenseMatrix passes through, 1-D becomes a row vector."""
    if isinstance(value, DenseMatrix):
        if dtype is not None and value.dtype != np.dtype(dtype):
            raise LayoutIncompatible(f"operand dtype {value.dtype} does not match requested {np.dtype(dtype)}")
        return value
    arr = np.asarray(value, dtype=dtype)
    return DenseMatrix.from_numpy(arr)


# --- operand checks shared by all backends ------------------------------------


def _check_same_dtype(a: DenseMatrix, b: DenseMatrix) -> None:
    if a.dtype != b.dtype:
        raise LayoutIncompatible(f"operands must share one element type, got {a.dtype} and {b.dtype}")


def check_dot_operands(a: DenseMatrix, b: DenseMatrix) -> None:
    if not a.is_vector() or not b.is_vector():
        raise ShapeMismatch(f"dot product expects vectors, got {a.rows}x{a.cols} and {b.rows}x{b.cols}")
    if len(a) != len(b):
        raise LengthMismatch(f"cant compute dotprod for vectors of different lengths ({len(a)} vs {len(b)})")
    _check_same_dtype(a, b)


def check_matmul_operands(a: DenseMatrix, b: DenseMatrix) -> None:
    if a.cols != b.rows:
        raise DimensionMismatch(
            f"cant multiply matrices: {a.rows}x{a.cols} by {b.rows}x{b.cols} (a.cols must equal b.rows)"
        )
    _check_same_dtype(a, b)


def matmul_output_shape(a: DenseMatrix, b: DenseMatrix) -> Tuple[int, int]:
    return (a.rows, b.cols)


__all__ = [
    "DenseMatrix",
    "MatrixLike",
    "as_matrix",
    "check_layout",
    "check_dot_operands",
    "check_matmul_operands",
    "matmul_output_shape",
]
