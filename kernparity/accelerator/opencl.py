"""PyOpenCL implementation of the compute device interface.

Responsibilities:
  * Device discovery across all platforms, selected by
    KERNPARITY_OPENCL_DEVICE_INDEX.
  * Building the kernel library (the catalog's .cl files) once per device.
  * Host-visible buffers (ALLOC_HOST_PTR) read back through a blocking map.
  * Blocking submission with profiling-based kernel timings.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import numpy as _np

try:
    import pyopencl as cl  # type: ignore
except Exception:  # pragma: no cover - platform w/o OpenCL
    cl = None  # type: ignore

from .. import config as _cfg
from ..errors import DeviceUnavailable, ExecutionFailed, PipelineCreationFailed
from ..kernels import KernelCatalog, get_kernel_catalog
from ..utils.logging import get_logger as _get_logger
from .device import ComputeDevice, ComputePipeline, DeviceBuffer, KernelLibrary
from .geometry import LaunchGeometry

_log = _get_logger("kernparity.opencl")


def is_opencl_available() -> bool:
    if cl is None:
        return False
    try:
        for p in cl.get_platforms():
            try:
                if p.get_devices():  # any device
                    return True
            except Exception:
                continue
        return False
    except Exception:
        return False


def _list_devices() -> List["cl.Device"]:  # type: ignore
    devices = []
    try:
        platforms = cl.get_platforms()
    except Exception as exc:
        raise DeviceUnavailable(f"no OpenCL platforms: {exc}") from exc
    for plat in platforms:
        try:
            devices.extend(plat.get_devices())
        except Exception:
            continue
    return devices


class OpenCLBuffer(DeviceBuffer):
    def __init__(self, queue: "cl.CommandQueue", buf: "cl.Buffer"):  # type: ignore
        self._queue = queue
        self._buf = buf

    @property
    def handle(self) -> "cl.Buffer":  # type: ignore
        return self._buf

    @property
    def length(self) -> int:
        return int(self._buf.size)

    def read(self, dtype: _np.dtype) -> _np.ndarray:
        dtype = _np.dtype(dtype)
        count = self.length // dtype.itemsize
        mapped, _evt = cl.enqueue_map_buffer(
            self._queue, self._buf, cl.map_flags.READ, 0, (count,), dtype, is_blocking=True
        )
        try:
            return _np.array(mapped, copy=True)
        finally:
            mapped.base.release(self._queue)

    def release(self) -> None:
        if self._buf is not None:
            self._buf.release()
            self._buf = None


class OpenCLLibrary(KernelLibrary):
    def __init__(self, programs: Dict[str, "cl.Program"], tile: int):  # type: ignore
        # entry point name -> program holding it
        self._programs = programs
        self.tile = tile

    def function_names(self) -> List[str]:
        return sorted(self._programs)

    def has_function(self, name: str) -> bool:
        return name in self._programs

    def program_for(self, name: str) -> "cl.Program":  # type: ignore
        return self._programs[name]


class OpenCLDevice(ComputeDevice):
    """One OpenCL device with its own context and profiling-enabled queue."""

    def __init__(self, device: "cl.Device", catalog: Optional[KernelCatalog] = None):  # type: ignore
        self.device = device
        self.name = str(getattr(device, "name", "opencl")).strip()
        self.catalog = catalog or get_kernel_catalog()
        self.ctx = cl.Context(devices=[device])
        self.queue = cl.CommandQueue(self.ctx, properties=cl.command_queue_properties.PROFILING_ENABLE)

    # --- library -------------------------------------------------------------
    def load_library(self) -> OpenCLLibrary:
        tile = int(_cfg.get("KERNPARITY_TILE") or 16)
        extra = str(_cfg.get("KERNPARITY_OPENCL_BUILD_OPTIONS") or "").strip()
        options = f"-D TILE={tile}" + (f" {extra}" if extra else "")
        programs: Dict[str, Any] = {}
        for path in self.catalog.source_files():
            if not path.exists():
                _log.warning(f"kernel source {path} missing; its kernels will be unavailable")
                continue
            try:
                prg = cl.Program(self.ctx, path.read_text()).build(options=options)
            except Exception as e:
                _log.warning(f"building {path.name} for {self.name} failed: {e}")
                continue
            for kernel in prg.all_kernels():
                programs[kernel.function_name] = prg
        _log.info(f"kernel library built for {self.name}: {len(programs)} entry points (TILE={tile})")
        return OpenCLLibrary(programs, tile)

    # --- memory --------------------------------------------------------------
    def allocate(self, nbytes: int, host_data: Optional[_np.ndarray] = None) -> OpenCLBuffer:
        mf = cl.mem_flags
        if host_data is not None:
            host = _np.require(host_data, requirements=["C", "W"])
            buf = cl.Buffer(self.ctx, mf.READ_WRITE | mf.ALLOC_HOST_PTR | mf.COPY_HOST_PTR, hostbuf=host)
        else:
            buf = cl.Buffer(self.ctx, mf.READ_WRITE | mf.ALLOC_HOST_PTR, size=int(nbytes))
        return OpenCLBuffer(self.queue, buf)

    # --- execution -----------------------------------------------------------
    def new_pipeline(self, library: KernelLibrary, function_name: str) -> ComputePipeline:
        if not isinstance(library, OpenCLLibrary):
            raise PipelineCreationFailed(f"library {library!r} was not built for an OpenCL device")
        try:
            kernel = cl.Kernel(library.program_for(function_name), function_name)
            max_threads = int(kernel.get_work_group_info(cl.kernel_work_group_info.WORK_GROUP_SIZE, self.device))
            width = int(
                kernel.get_work_group_info(
                    cl.kernel_work_group_info.PREFERRED_WORK_GROUP_SIZE_MULTIPLE, self.device
                )
            )
        except Exception as e:
            raise PipelineCreationFailed(f"device {self.name} rejected kernel '{function_name}': {e}") from e
        return ComputePipeline(function_name, max(1, width), max(1, max_threads), handle=kernel)

    def submit(
        self,
        pipeline: ComputePipeline,
        buffers: Sequence[DeviceBuffer],
        scalars: Sequence[int],
        geometry: LaunchGeometry,
    ) -> float:
        kernel = pipeline.handle
        dims = 2 if geometry.grid[1] > 1 or geometry.group[1] > 1 else 1
        try:
            kernel.set_args(*[b.handle for b in buffers], *[_np.uint32(s) for s in scalars])
            evt = cl.enqueue_nd_range_kernel(
                self.queue, kernel, geometry.global_size(dims), geometry.local_size(dims)
            )
            evt.wait()
        except Exception as e:
            raise ExecutionFailed(f"{pipeline.kernel_name} failed on {self.name}: {e}") from e
        try:
            return (evt.profile.end - evt.profile.start) * 1e-9
        except Exception:
            return 0.0

    def metadata(self) -> Dict[str, Any]:  # pragma: no cover (simple accessor)
        dev = self.device
        return {
            "name": self.name,
            "vendor": getattr(dev, "vendor", None),
            "version": getattr(dev, "version", None),
            "max_work_group_size": getattr(dev, "max_work_group_size", None),
            "local_mem_size": getattr(dev, "local_mem_size", None),
            "global_mem_size": getattr(dev, "global_mem_size", None),
            "max_compute_units": getattr(dev, "max_compute_units", None),
        }


def default_device(catalog: Optional[KernelCatalog] = None) -> OpenCLDevice:
    """Acquire the configured OpenCL device or raise DeviceUnavailable."""
    if cl is None:
        raise DeviceUnavailable("pyopencl not available; install PyOpenCL and a vendor OpenCL runtime")
    devices = _list_devices()
    if not devices:
        raise DeviceUnavailable("No OpenCL devices found; ensure GPU drivers and an OpenCL runtime are installed")
    idx = int(_cfg.get("KERNPARITY_OPENCL_DEVICE_INDEX") or 0)
    idx = max(0, min(idx, len(devices) - 1))
    try:
        device = OpenCLDevice(devices[idx], catalog=catalog)
    except Exception as e:
        raise DeviceUnavailable(f"could not open OpenCL device {idx}: {e}") from e
    _log.info(f"acquired OpenCL device {idx}: {device.name}")
    return device


__all__ = ["OpenCLDevice", "OpenCLBuffer", "OpenCLLibrary", "default_device", "is_opencl_available"]
