"""
Parallel CPU backend.

Fork-join over a bounded ThreadPoolExecutor. The index space is cut into
contiguous slices, each worker writes only its own output slice, and the
slices are stitched back in submission order, so the result is identical to
the sequential backend whatever order the workers finish in. NumPy releases
the GIL inside its elementwise loops, which is what makes threads pay off.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

import numpy as np

from .. import config as _cfg
from ..matrix import (
    DenseMatrix,
    MatrixLike,
    as_matrix,
    check_dot_operands,
    check_matmul_operands,
)
from ..utils.logging import get_logger as _get_logger
from .base import Backend
from .sequential import accumulate_product, hadamard

_log = _get_logger("kernparity.parallel")


def default_workers() -> int:
    configured = int(_cfg.get("KERNPARITY_WORKERS") or 0)
    if configured > 0:
        return configured
    return os.cpu_count() or 1


def partition_range(length: int, parts: int) -> List[Tuple[int, int]]:
    """Split ``range(length)`` into at most ``parts`` contiguous, ordered slices.

    Slice sizes differ by at most one and empty slices are never produced.
    """
    if length <= 0:
        return []
    parts = max(1, min(int(parts), length))
    base, extra = divmod(length, parts)
    bounds = []
    start = 0
    for i in range(parts):
        stop = start + base + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


class ParallelKernel(Backend):
    """Multi-threaded dot product and row-partitioned matrix multiply."""

    def __init__(self, workers: Optional[int] = None, min_chunk: Optional[int] = None):
        super().__init__("parallel")
        self.workers = int(workers) if workers else default_workers()
        if min_chunk is None:
            min_chunk = int(_cfg.get("KERNPARITY_PARALLEL_MIN_CHUNK") or 1)
        self.min_chunk = max(1, int(min_chunk))
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def initialize(self) -> bool:
        self.capabilities.available = True
        self.capabilities.device_count = 1
        self.capabilities.device_names = ["CPU"]
        self.capabilities.workers = self.workers
        self._initialized = True
        return True

    # --- pool lifecycle ------------------------------------------------------
    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="kernparity")
            return self._executor

    def close(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> "ParallelKernel":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _parts_for(self, units: int, unit_cost: int = 1) -> int:
        by_size = max(1, (units * unit_cost) // self.min_chunk)
        return max(1, min(self.workers, by_size, units))

    # --- operations ----------------------------------------------------------
    def dot(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        a = as_matrix(a)
        b = as_matrix(b)
        check_dot_operands(a, b)
        xs = a.elements
        ys = b.elements
        slices = partition_range(len(xs), self._parts_for(len(xs)))
        if len(slices) == 1:
            out = hadamard(xs, ys)
        else:
            pool = self._pool()
            futures = [pool.submit(hadamard, xs[lo:hi], ys[lo:hi]) for lo, hi in slices]
            # joined in submission order, not completion order
            out = np.concatenate([f.result() for f in futures])
        return DenseMatrix(a.rows, a.cols, out)

    def matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        a = as_matrix(a)
        b = as_matrix(b)
        check_matmul_operands(a, b)
        lhs = a.to_numpy()
        rhs = b.to_numpy()
        # each worker owns a disjoint block of output rows
        blocks = partition_range(a.rows, self._parts_for(a.rows, unit_cost=a.cols * b.cols))
        if len(blocks) == 1:
            out = accumulate_product(lhs, rhs)
        else:
            pool = self._pool()
            futures = [pool.submit(accumulate_product, lhs[lo:hi], rhs) for lo, hi in blocks]
            out = np.concatenate([f.result() for f in futures], axis=0)
        _log.debug(f"matmul {a.rows}x{a.cols} @ {b.rows}x{b.cols} over {len(blocks)} row blocks")
        return DenseMatrix(a.rows, b.cols, out)


__all__ = ["ParallelKernel", "partition_range", "default_workers"]
