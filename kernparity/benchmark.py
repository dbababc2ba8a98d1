"""
Benchmark runner: time each backend on identical inputs, then check parity.

Timings are inclusive wall clock per call (marshaling and readback included
for the accelerator); the accelerator additionally reports the
device-measured kernel time.
"""

from __future__ import annotations

import statistics
from dataclasses import asdict, dataclass, field
from time import perf_counter
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from . import config as _cfg
from . import data as _data
from .backends.accelerator import AcceleratorBackend
from .backends.base import Backend, get_backend_manager
from .errors import AcceleratorError
from .kernels import KernelOp, get_kernel_catalog
from .matrix import DenseMatrix
from .parity import ParityReport, compare
from .utils.logging import get_logger as _get_logger

_log = _get_logger("kernparity.benchmark")

DEFAULT_BACKENDS = ("sequential", "parallel", "accelerator")


def timed_runs(
    fn: Callable[..., Any],
    args: Iterable = (),
    runs: int = 5,
    warmup: int = 3,
    sync_fn: Optional[Callable[[], None]] = None,
) -> Tuple[List[float], Any]:
    """Call ``fn(*args)`` ``warmup`` times untimed, then ``runs`` times timed.

    Returns (per-run seconds, result of the last call). ``sync_fn`` runs after
    every call, inside the timed region.
    """
    args = tuple(args)
    res = None
    for _ in range(warmup):
        res = fn(*args)
        if sync_fn:
            sync_fn()
    timings: List[float] = []
    for _ in range(runs):
        t0 = perf_counter()
        res = fn(*args)
        if sync_fn:
            sync_fn()
        timings.append(perf_counter() - t0)
    return timings, res


def benchmark_callable(
    fn: Callable[..., Any],
    args: Iterable = (),
    runs: int = 5,
    warmup: int = 3,
    sync_fn: Optional[Callable[[], None]] = None,
) -> float:
    """Median seconds of ``runs`` timed calls after ``warmup`` untimed ones."""
    timings, _ = timed_runs(fn, args, runs=runs, warmup=warmup, sync_fn=sync_fn)
    return statistics.median(timings)


@dataclass
class BenchmarkResult:
    """Results from one backend."""

    backend: str
    op: str
    kernel: Optional[str]
    shape: Tuple[int, int]
    dtype: str
    mean_ms: float = 0.0
    median_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    iterations: int = 0
    device_ms: Optional[float] = None
    gflops: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BenchmarkReport:
    op: str
    kernel: Optional[str]
    results: List[BenchmarkResult] = field(default_factory=list)
    outputs: Dict[str, DenseMatrix] = field(default_factory=dict)
    parity: Optional[ParityReport] = None

    @property
    def ok(self) -> bool:
        return self.parity is None or self.parity.ok

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": self.op,
            "kernel": self.kernel,
            "results": [r.to_dict() for r in self.results],
            "parity": self.parity.to_dict() if self.parity else None,
        }


def _flop_count(op: KernelOp, a: DenseMatrix, b: DenseMatrix) -> float:
    if op is KernelOp.DOT:
        return float(len(a))
    return 2.0 * a.rows * a.cols * b.cols


def _resolve_backends(names: Optional[Sequence[str]]) -> List[Backend]:
    manager = get_backend_manager()
    backends = []
    for name in names or DEFAULT_BACKENDS:
        backend = manager.get_backend(name)
        if backend is None:
            raise ValueError(f"unknown backend '{name}' (known: {', '.join(manager.names())})")
        backends.append(backend)
    return backends


def run_benchmark(
    op: KernelOp,
    a: DenseMatrix,
    b: DenseMatrix,
    kernel_name: Optional[str] = None,
    backends: Optional[Sequence[Backend]] = None,
    warmup: Optional[int] = None,
    runs: Optional[int] = None,
    tolerance: Optional[float] = None,
) -> BenchmarkReport:
    """Time ``op`` on every backend and compare the outputs that were produced.

    An accelerator failure is recorded on its result row; the remaining
    backends still run and are still compared.
    """
    warmup = int(_cfg.get("KERNPARITY_BENCH_WARMUP")) if warmup is None else int(warmup)
    runs = int(_cfg.get("KERNPARITY_BENCH_RUNS")) if runs is None else int(runs)
    runs = max(1, runs)
    if backends is None:
        backends = _resolve_backends(None)
    if kernel_name is not None:
        get_kernel_catalog().resolve(kernel_name, op)
    op_name = op.value
    out_shape = a.shape if op is KernelOp.DOT else (a.rows, b.cols)
    flops = _flop_count(op, a, b)
    report = BenchmarkReport(op=op_name, kernel=kernel_name)

    for backend in backends:
        row = BenchmarkResult(backend.name, op_name, kernel_name, out_shape, a.dtype.name)
        device_s: List[float] = []
        if isinstance(backend, AcceleratorBackend):
            if not backend.initialize():
                row.error = backend.capabilities.error_msg or "accelerator unavailable"
                _log.warning(f"skipping accelerator: {row.error}")
                report.results.append(row)
                continue
            name = kernel_name or backend.kernel_for(op, a, None)
            row.kernel = name

            def call(name=name):
                outcome = backend.dispatcher.dispatch_timed(a, b, name)
                device_s.append(outcome.kernel_s)
                return outcome.output

        else:

            def call(backend=backend):
                return backend.execute(op_name, a, b, kernel_name)

        try:
            timings, output = timed_runs(call, runs=runs, warmup=warmup)
        except AcceleratorError as e:
            row.error = str(e)
            _log.warning(f"{backend.name} failed: {e}")
            report.results.append(row)
            continue

        ms = [t * 1e3 for t in timings]
        row.mean_ms = statistics.mean(ms)
        row.median_ms = statistics.median(ms)
        row.min_ms = min(ms)
        row.max_ms = max(ms)
        row.iterations = runs
        if device_s:
            row.device_ms = statistics.median(device_s[-runs:]) * 1e3
        if row.median_ms > 0:
            row.gflops = flops / (row.median_ms * 1e-3) / 1e9
        _log.info(f"{backend.name}: {op_name} median {row.median_ms:.3f} ms")
        report.results.append(row)
        report.outputs[backend.name] = output

    if len(report.outputs) >= 2:
        report.parity = compare(list(report.outputs.items()), tolerance)
    return report


def run_dotprod_benchmark(
    size: int = 1_000_000,
    kernel_name: str = "dotprod_integer16",
    backends: Optional[Sequence[str]] = None,
    seed: int = _data.DEFAULT_SEED,
    **kwargs: Any,
) -> BenchmarkReport:
    """The dot product benchmark: two random vectors of the kernel's element type."""
    spec = get_kernel_catalog().resolve(kernel_name, KernelOp.DOT)
    a = _data.random_vector(size, spec.dtype, seed)
    b = _data.random_vector(size, spec.dtype, seed + 1)
    return run_benchmark(KernelOp.DOT, a, b, kernel_name, _resolve_backends(backends), **kwargs)


def run_matmul_benchmark(
    rows: int = 1024,
    inner: int = 1024,
    cols: int = 1024,
    kernel_name: str = "matmul_half_float",
    backends: Optional[Sequence[str]] = None,
    seed: int = _data.DEFAULT_SEED,
    **kwargs: Any,
) -> BenchmarkReport:
    """The matrix multiply benchmark: (rows x inner) @ (inner x cols)."""
    spec = get_kernel_catalog().resolve(kernel_name, KernelOp.MATMUL)
    a = _data.random_matrix(rows, inner, spec.dtype, seed)
    b = _data.random_matrix(inner, cols, spec.dtype, seed + 1)
    return run_benchmark(KernelOp.MATMUL, a, b, kernel_name, _resolve_backends(backends), **kwargs)


def sample(m: DenseMatrix, count: int = 5) -> Tuple[List[Any], List[Any]]:
    """First and last ``count`` elements, for eyeballing outputs side by side."""
    flat = m.elements
    return np.asarray(flat[:count]).tolist(), np.asarray(flat[-count:]).tolist()


__all__ = [
    "BenchmarkResult",
    "BenchmarkReport",
    "benchmark_callable",
    "timed_runs",
    "run_benchmark",
    "run_dotprod_benchmark",
    "run_matmul_benchmark",
    "sample",
]
