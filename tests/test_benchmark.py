import numpy as np

from kernparity.accelerator.dispatcher import AcceleratorDispatcher
from kernparity.backends.accelerator import AcceleratorBackend
from kernparity.backends.parallel import ParallelKernel
from kernparity.backends.sequential import SequentialKernel
from kernparity.benchmark import benchmark_callable, run_benchmark, run_dotprod_benchmark, sample
from kernparity.data import random_matrix, random_vector
from kernparity.errors import DeviceUnavailable
from kernparity.kernels import KernelOp

from conftest import FakeDevice


def test_benchmark_respects_warmup_and_sync():
    calls = {"n": 0, "sync": 0}

    def fn():
        calls["n"] += 1

    def sync():
        calls["sync"] += 1

    # With warmup=3 and runs=5, total calls should be 8
    _ = benchmark_callable(fn, runs=5, warmup=3, sync_fn=sync)
    assert calls["n"] == 8
    assert calls["sync"] == 8


def test_run_benchmark_with_fake_accelerator():
    accel = AcceleratorBackend(AcceleratorDispatcher(device=FakeDevice()))
    a = random_matrix(8, 16, np.float16, seed=1)
    b = random_matrix(16, 4, np.float16, seed=2)
    report = run_benchmark(
        KernelOp.MATMUL,
        a,
        b,
        "matmul_half_float",
        [SequentialKernel(), ParallelKernel(workers=2, min_chunk=1), accel],
        warmup=0,
        runs=2,
    )
    assert report.ok
    assert [r.backend for r in report.results] == ["sequential", "parallel", "accelerator"]
    accel_row = report.results[-1]
    assert accel_row.kernel == "matmul_half_float"
    assert accel_row.device_ms is not None
    assert all(r.iterations == 2 for r in report.results)
    assert report.to_dict()["parity"]["ok"] is True


def test_unavailable_accelerator_is_recorded_not_raised():
    def no_device():
        raise DeviceUnavailable("no accelerator in this test")

    accel = AcceleratorBackend(AcceleratorDispatcher(device_factory=no_device))
    a = random_vector(64, np.uint16, seed=1)
    b = random_vector(64, np.uint16, seed=2)
    report = run_benchmark(KernelOp.DOT, a, b, None, [SequentialKernel(), ParallelKernel(workers=2), accel], 0, 1)
    accel_row = report.results[-1]
    assert not accel_row.ok
    assert "no accelerator" in accel_row.error
    assert set(report.outputs) == {"sequential", "parallel"}
    assert report.parity is not None and report.parity.ok


def test_oversized_tile_is_recorded_on_accelerator_row():
    accel = AcceleratorBackend(AcceleratorDispatcher(device=FakeDevice(max_threads_per_group=64, tile=16)))
    a = random_matrix(4, 4, np.float32, seed=1)
    b = random_matrix(4, 4, np.float32, seed=2)
    report = run_benchmark(
        KernelOp.MATMUL,
        a,
        b,
        "matmul_tiled",
        [SequentialKernel(), ParallelKernel(workers=2, min_chunk=1), accel],
        warmup=0,
        runs=1,
    )
    accel_row = report.results[-1]
    assert not accel_row.ok
    assert "threads per group" in accel_row.error
    assert set(report.outputs) == {"sequential", "parallel"}
    assert report.parity is not None and report.parity.ok


def test_kernel_fault_is_recorded_on_accelerator_row():
    device = FakeDevice(fail_submit=True)
    accel = AcceleratorBackend(AcceleratorDispatcher(device=device))
    a = random_vector(64, np.float32, seed=1)
    b = random_vector(64, np.float32, seed=2)
    report = run_benchmark(
        KernelOp.DOT, a, b, "dotprod_float32", [SequentialKernel(), ParallelKernel(workers=2), accel], 0, 1
    )
    accel_row = report.results[-1]
    assert not accel_row.ok
    assert "faulted" in accel_row.error
    assert accel_row.device_ms is None
    assert device.outstanding == 0
    assert set(report.outputs) == {"sequential", "parallel"}
    assert report.ok


def test_dotprod_benchmark_cpu_only():
    report = run_dotprod_benchmark(size=2048, backends=["sequential", "parallel"], warmup=0, runs=1)
    assert report.ok
    out = report.outputs["sequential"]
    assert out.shape == (1, 2048)
    assert out.dtype == np.uint16
    head, tail = sample(out, 5)
    assert len(head) == 5 and len(tail) == 5
