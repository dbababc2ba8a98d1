"""
Sequential CPU backend: the single-threaded reference every other backend is
checked against.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..matrix import (
    DenseMatrix,
    MatrixLike,
    as_matrix,
    check_dot_operands,
    check_matmul_operands,
)
from .base import Backend


def hadamard(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Elementwise product in the operands' own element type."""
    return np.multiply(a, b)


def accumulate_product(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Return ``a @ b`` for 2-D ``a`` (m x k) and ``b`` (k x n).

    Each output cell starts at a zero of the element type and adds
    ``a[i, t] * b[t, j]`` for t = 0..k-1 in order, rounding (or wrapping) in
    that type after every multiply and every add, exactly like the scalar
    triple loop. The loop over cells is vectorised; the loop over t is not.
    """
    m, k = a.shape
    n = b.shape[1]
    acc = np.zeros((m, n), dtype=a.dtype)
    for t in range(k):
        acc += np.multiply.outer(a[:, t], b[t, :])
    return acc


class SequentialKernel(Backend):
    """Single-threaded dot product and matrix multiply."""

    def __init__(self):
        super().__init__("sequential")

    def initialize(self) -> bool:
        self.capabilities.available = True
        self.capabilities.device_count = 1
        self.capabilities.device_names = ["CPU"]
        self.capabilities.workers = 1
        self._initialized = True
        return True

    def dot(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        a = as_matrix(a)
        b = as_matrix(b)
        check_dot_operands(a, b)
        return DenseMatrix(a.rows, a.cols, hadamard(a.elements, b.elements))

    def matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        a = as_matrix(a)
        b = as_matrix(b)
        check_matmul_operands(a, b)
        out = accumulate_product(a.to_numpy(), b.to_numpy())
        return DenseMatrix(a.rows, b.cols, out)


__all__ = ["SequentialKernel", "hadamard", "accumulate_product"]
