"""Caller-facing operations.

Operands may be ``DenseMatrix`` instances or array-likes (1-D inputs become
1 x n row vectors). Each call validates shapes before any work starts and
returns a fresh ``DenseMatrix`` or raises one of ``kernparity.errors``.
"""

from __future__ import annotations

from typing import Optional

from .accelerator.dispatcher import AcceleratorDispatcher, get_dispatcher
from .backends.parallel import ParallelKernel
from .backends.sequential import SequentialKernel
from .matrix import DenseMatrix, MatrixLike

_SEQUENTIAL = SequentialKernel()
_PARALLEL: Optional[ParallelKernel] = None


def _parallel() -> ParallelKernel:
    global _PARALLEL
    if _PARALLEL is None:
        _PARALLEL = ParallelKernel()
    return _PARALLEL


def sequential_dot(a: MatrixLike, b: MatrixLike) -> DenseMatrix:
    """Elementwise product of two equal-length vectors, single-threaded."""
    return _SEQUENTIAL.dot(a, b)


def parallel_dot(a: MatrixLike, b: MatrixLike) -> DenseMatrix:
    """Elementwise product of two equal-length vectors on the CPU worker pool."""
    return _parallel().dot(a, b)


def accelerator_dot(
    a: MatrixLike, b: MatrixLike, kernel_name: str, dispatcher: Optional[AcceleratorDispatcher] = None
) -> DenseMatrix:
    return (dispatcher or get_dispatcher()).dot(a, b, kernel_name)


def sequential_matmul(a: MatrixLike, b: MatrixLike) -> DenseMatrix:
    return _SEQUENTIAL.matmul(a, b)


def parallel_matmul(a: MatrixLike, b: MatrixLike) -> DenseMatrix:
    return _parallel().matmul(a, b)


def accelerator_matmul(
    a: MatrixLike, b: MatrixLike, kernel_name: str, dispatcher: Optional[AcceleratorDispatcher] = None
) -> DenseMatrix:
    return (dispatcher or get_dispatcher()).matmul(a, b, kernel_name)


__all__ = [
    "sequential_dot",
    "parallel_dot",
    "accelerator_dot",
    "sequential_matmul",
    "parallel_matmul",
    "accelerator_matmul",
]
