import numpy as np
import pytest

from kernparity import api
from kernparity.accelerator.dispatcher import AcceleratorDispatcher
from kernparity.errors import (
    AcceleratorError,
    DeviceUnavailable,
    DimensionMismatch,
    ExecutionFailed,
    LayoutIncompatible,
    LengthMismatch,
    PipelineCreationFailed,
    ReadbackSizeMismatch,
    UnknownKernel,
)
from kernparity.matrix import DenseMatrix

from conftest import FakeDevice


def _f32(rows, cols, values):
    return DenseMatrix(rows, cols, values, dtype=np.float32)


def test_dot_concrete(dispatcher, fake_device):
    a = DenseMatrix.vector([1, 2, 3, 4], dtype=np.float32)
    b = DenseMatrix.vector([5, 6, 7, 8], dtype=np.float32)
    out = api.accelerator_dot(a, b, "dotprod_float32", dispatcher=dispatcher)
    assert out.tolist() == [[5, 12, 21, 32]]
    assert fake_device.allocated == 3
    assert fake_device.outstanding == 0


def test_matmul_concrete(dispatcher, fake_device):
    a = _f32(2, 2, [1, 2, 3, 4])
    b = _f32(2, 2, [5, 6, 7, 8])
    out = api.accelerator_matmul(a, b, "matmul_simple", dispatcher=dispatcher)
    assert out.tolist() == [[19, 22], [43, 50]]
    kernel, scalars, geometry = fake_device.submissions[-1]
    assert kernel == "matmul_simple"
    assert scalars == (2, 2, 2)
    assert geometry.grid == (2, 2, 1)


def test_matmul_rectangular_matches_cpu(dispatcher):
    rng = np.random.default_rng(7)
    a = DenseMatrix.from_numpy(rng.random((4, 4)).astype(np.float32))
    b = DenseMatrix.from_numpy(rng.random((4, 3)).astype(np.float32))
    out = dispatcher.matmul(a, b, "matmul_simple")
    assert out.shape == (4, 3)
    assert out == api.sequential_matmul(a, b)


def test_uint16_kernel_via_alias(dispatcher):
    a = DenseMatrix.vector(np.arange(10, dtype=np.uint16))
    b = DenseMatrix.vector(np.arange(10, dtype=np.uint16))
    out = dispatcher.dispatch(a, b, "dotprod_ushort")
    assert out == api.sequential_dot(a, b)


def test_tiled_kernel_uses_library_tile(dispatcher, fake_device):
    a = DenseMatrix.from_numpy(np.ones((5, 3), dtype=np.float32))
    b = DenseMatrix.from_numpy(np.ones((3, 6), dtype=np.float32))
    result = dispatcher.dispatch_timed(a, b, "matmul_tiled")
    assert result.geometry.group == (fake_device.tile, fake_device.tile, 1)
    assert result.output.tolist() == [[3.0] * 6] * 5
    assert result.kernel_s > 0


def test_unknown_kernel_allocates_nothing(dispatcher, fake_device):
    a = _f32(1, 2, [1, 2])
    with pytest.raises(UnknownKernel):
        dispatcher.dispatch(a, a, "no_such_kernel")
    assert fake_device.allocated == 0


def test_kernel_missing_from_library_allocates_nothing():
    device = FakeDevice(missing={"dotprod_float32"})
    disp = AcceleratorDispatcher(device=device)
    a = _f32(1, 2, [1, 2])
    with pytest.raises(UnknownKernel):
        disp.dot(a, a, "dotprod_float32")
    assert device.allocated == 0


def test_op_mismatch_is_unknown_kernel(dispatcher):
    a = _f32(2, 2, [1, 2, 3, 4])
    with pytest.raises(UnknownKernel):
        dispatcher.dot(a, a, "matmul_simple")


def test_shape_errors_before_allocation(dispatcher, fake_device):
    with pytest.raises(DimensionMismatch):
        dispatcher.matmul(_f32(2, 3, range(6)), _f32(2, 2, range(4)), "matmul_simple")
    with pytest.raises(LengthMismatch):
        dispatcher.dot(_f32(1, 3, range(3)), _f32(1, 2, range(2)), "dotprod_float32")
    assert fake_device.allocated == 0


def test_element_type_must_match_kernel(dispatcher, fake_device):
    a = DenseMatrix.vector([1, 2], dtype=np.uint16)
    with pytest.raises(LayoutIncompatible):
        dispatcher.dot(a, a, "dotprod_float32")
    assert fake_device.allocated == 0


def test_device_unavailable():
    def no_device():
        raise DeviceUnavailable("no accelerator in this test")

    disp = AcceleratorDispatcher(device_factory=no_device)
    assert not disp.is_available()
    with pytest.raises(DeviceUnavailable):
        disp.dot([1.0], [1.0], "dotprod_float32")


def test_pipeline_rejection_releases_buffers():
    device = FakeDevice(reject={"matmul_simple"})
    disp = AcceleratorDispatcher(device=device)
    a = _f32(2, 2, [1, 2, 3, 4])
    with pytest.raises(PipelineCreationFailed):
        disp.matmul(a, a, "matmul_simple")
    assert device.allocated == 3
    assert device.outstanding == 0


def test_tile_larger_than_group_limit_fails_pipeline():
    device = FakeDevice(max_threads_per_group=64, tile=16)
    disp = AcceleratorDispatcher(device=device)
    a = DenseMatrix(4, 4, np.ones(16), dtype=np.float32)
    with pytest.raises(PipelineCreationFailed) as exc:
        disp.matmul(a, a, "matmul_tiled")
    assert isinstance(exc.value, AcceleratorError)
    assert "16x16" in str(exc.value)
    assert device.submissions == []
    assert device.outstanding == 0


def test_execution_failure_releases_buffers():
    device = FakeDevice(fail_submit=True)
    disp = AcceleratorDispatcher(device=device)
    a = _f32(2, 2, [1, 2, 3, 4])
    with pytest.raises(ExecutionFailed):
        disp.matmul(a, a, "matmul_simple")
    assert len(device.submissions) == 1
    assert device.allocated == 3
    assert device.outstanding == 0


def test_short_readback_raises():
    device = FakeDevice(short_readback=True)
    disp = AcceleratorDispatcher(device=device)
    a = _f32(1, 4, [1, 2, 3, 4])
    with pytest.raises(ReadbackSizeMismatch):
        disp.dot(a, a, "dotprod_float32")
    assert device.outstanding == 0


def test_library_loaded_once_buffers_not_retained(dispatcher, fake_device):
    a = _f32(1, 4, [1, 2, 3, 4])
    for _ in range(3):
        dispatcher.dot(a, a, "dotprod_float32")
    assert fake_device.library_loads == 1
    assert fake_device.allocated == 9
    assert fake_device.outstanding == 0


def test_group_width_follows_pipeline_limits():
    device = FakeDevice(execution_width=64, max_threads_per_group=48)
    disp = AcceleratorDispatcher(device=device)
    a = DenseMatrix.vector(np.ones(100, dtype=np.float32))
    result = disp.dispatch_timed(a, a, "dotprod_float32")
    assert result.geometry.group == (32, 1, 1)
    assert result.geometry.padded_grid == (128, 1, 1)
