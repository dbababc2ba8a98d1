"""Seeded benchmark inputs.

Integer types draw uniformly from [0, 32) and floating types from [0, 1),
the ranges the benchmarks were calibrated with: 16-bit products of values
below 32 never wrap, and unit-interval halves keep matmul sums representable.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from .matrix import DenseMatrix, check_layout

DEFAULT_SEED = 1337
INT_HIGH = 32


def random_elements(count: int, dtype: Any = np.float32, seed: int = DEFAULT_SEED) -> np.ndarray:
    dt = check_layout(dtype)
    rng = np.random.default_rng(seed)
    if np.issubdtype(dt, np.integer):
        return rng.integers(0, INT_HIGH, size=count).astype(dt)
    if np.issubdtype(dt, np.complexfloating):
        return (rng.random(count) + 1j * rng.random(count)).astype(dt)
    return rng.random(count).astype(dt)


def random_vector(length: int, dtype: Any = np.uint16, seed: int = DEFAULT_SEED) -> DenseMatrix:
    return DenseMatrix(1, length, random_elements(length, dtype, seed))


def random_matrix(rows: int, cols: int, dtype: Any = np.float16, seed: int = DEFAULT_SEED) -> DenseMatrix:
    return DenseMatrix(rows, cols, random_elements(rows * cols, dtype, seed))


__all__ = ["random_elements", "random_vector", "random_matrix", "DEFAULT_SEED"]
