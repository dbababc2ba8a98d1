import numpy as np
import pytest

from kernparity.accelerator.device import (
    ComputeDevice,
    ComputePipeline,
    DeviceBuffer,
    KernelLibrary,
)
from kernparity.accelerator.dispatcher import AcceleratorDispatcher
from kernparity.backends.sequential import accumulate_product, hadamard
from kernparity.errors import ExecutionFailed, PipelineCreationFailed
from kernparity.kernels import KernelOp, get_kernel_catalog


class FakeBuffer(DeviceBuffer):
    def __init__(self, device, nbytes, host_data=None, length_delta=0):
        self.device = device
        self.data = np.zeros(nbytes, dtype=np.uint8)
        if host_data is not None:
            raw = np.ascontiguousarray(host_data).view(np.uint8).reshape(-1)
            self.data[: raw.size] = raw
        self._length = nbytes + length_delta
        self.released = False

    @property
    def length(self):
        return self._length

    def read(self, dtype):
        return self.data.view(dtype).copy()

    def write(self, values):
        raw = np.ascontiguousarray(values).view(np.uint8).reshape(-1)
        self.data[: raw.size] = raw

    def release(self):
        if not self.released:
            self.released = True
            self.device.released += 1


class FakeLibrary(KernelLibrary):
    def __init__(self, names, tile=16):
        self._names = list(names)
        self.tile = tile

    def function_names(self):
        return list(self._names)


class FakeDevice(ComputeDevice):
    """Runs catalog kernels with NumPy, using the CPU reference arithmetic."""

    name = "fake"

    def __init__(
        self,
        execution_width=32,
        max_threads_per_group=256,
        missing=(),
        reject=(),
        short_readback=False,
        fail_submit=False,
        tile=4,
    ):
        self.catalog = get_kernel_catalog()
        self.execution_width = execution_width
        self.max_threads_per_group = max_threads_per_group
        self.missing = set(missing)
        self.reject = set(reject)
        self.short_readback = short_readback
        self.fail_submit = fail_submit
        self.tile = tile
        self.allocated = 0
        self.released = 0
        self.library_loads = 0
        self.submissions = []

    def load_library(self):
        self.library_loads += 1
        names = [s.entry_point for s in self.catalog.specs() if s.entry_point not in self.missing]
        return FakeLibrary(names, tile=self.tile)

    def allocate(self, nbytes, host_data=None):
        self.allocated += 1
        delta = -1 if (self.short_readback and host_data is None) else 0
        return FakeBuffer(self, nbytes, host_data, length_delta=delta)

    def new_pipeline(self, library, function_name):
        if function_name in self.reject:
            raise PipelineCreationFailed(f"fake device rejected '{function_name}'")
        return ComputePipeline(function_name, self.execution_width, self.max_threads_per_group)

    def submit(self, pipeline, buffers, scalars, geometry):
        self.submissions.append((pipeline.kernel_name, tuple(scalars), geometry))
        if self.fail_submit:
            raise ExecutionFailed(f"fake device faulted running '{pipeline.kernel_name}'")
        spec = self.catalog.resolve(pipeline.kernel_name)
        a = buffers[0].read(spec.dtype)
        b = buffers[1].read(spec.dtype)
        if spec.op is KernelOp.DOT:
            (n,) = scalars
            out = hadamard(a[:n], b[:n])
        else:
            m, k, n = scalars
            out = accumulate_product(a.reshape(m, k), b.reshape(k, n))
        buffers[2].write(out)
        return 1e-6

    @property
    def outstanding(self):
        return self.allocated - self.released


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def dispatcher(fake_device):
    return AcceleratorDispatcher(device=fake_device)
