"""Accelerator dispatch: marshal operands, launch a named kernel, read back.

One ``dispatch`` call owns every buffer and pipeline it creates and releases
them before returning. Only the device handle and its compiled kernel library
outlive a call; both are acquired lazily and cached on the dispatcher.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np

from ..errors import (
    DeviceUnavailable,
    LayoutIncompatible,
    PipelineCreationFailed,
    ReadbackSizeMismatch,
    UnknownKernel,
)
from ..kernels import KernelCatalog, KernelOp, KernelSpec, get_kernel_catalog
from ..matrix import (
    DenseMatrix,
    MatrixLike,
    as_matrix,
    check_dot_operands,
    check_matmul_operands,
    matmul_output_shape,
)
from ..utils.logging import get_logger as _get_logger
from .device import ComputeDevice, DeviceBuffer, KernelLibrary
from .geometry import LaunchGeometry, compute_launch_geometry, dot_grid, matmul_grid

_log = _get_logger("kernparity.accelerator")


@dataclass
class DispatchResult:
    output: DenseMatrix
    kernel: str
    geometry: LaunchGeometry
    kernel_s: float  # device-measured execution time
    total_s: float  # wall clock, marshaling and readback included


def _default_device_factory() -> ComputeDevice:
    from .opencl import default_device

    return default_device()


class AcceleratorDispatcher:
    """Runs catalog kernels on a compute device.

    ``device`` injects a ready device (tests pass a fake one); otherwise
    ``device_factory`` is called on first use to acquire the default device.
    """

    def __init__(
        self,
        device: Optional[ComputeDevice] = None,
        device_factory: Optional[Callable[[], ComputeDevice]] = None,
        catalog: Optional[KernelCatalog] = None,
    ):
        self._device = device
        self._device_factory = device_factory or _default_device_factory
        self._library: Optional[KernelLibrary] = None
        self._lock = threading.Lock()
        self.catalog = catalog or get_kernel_catalog()

    # --- cached resources ----------------------------------------------------
    @property
    def device(self) -> ComputeDevice:
        if self._device is None:
            with self._lock:
                if self._device is None:
                    device = self._device_factory()
                    if device is None:
                        raise DeviceUnavailable("no default compute device")
                    self._device = device
        return self._device

    @property
    def library(self) -> KernelLibrary:
        device = self.device
        if self._library is None:
            with self._lock:
                if self._library is None:
                    self._library = device.load_library()
        return self._library

    def is_available(self) -> bool:
        try:
            self.device
        except DeviceUnavailable:
            return False
        return True

    def close(self) -> None:
        """Drop the cached library and device handle."""
        with self._lock:
            self._library = None
            self._device = None

    # --- public operations ---------------------------------------------------
    def dispatch(self, a: MatrixLike, b: MatrixLike, kernel_name: str) -> DenseMatrix:
        return self.dispatch_timed(a, b, kernel_name).output

    def dot(self, a: MatrixLike, b: MatrixLike, kernel_name: str) -> DenseMatrix:
        return self._run(a, b, kernel_name, KernelOp.DOT).output

    def matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: str) -> DenseMatrix:
        return self._run(a, b, kernel_name, KernelOp.MATMUL).output

    def dispatch_timed(self, a: MatrixLike, b: MatrixLike, kernel_name: str) -> DispatchResult:
        return self._run(a, b, kernel_name, None)

    # --- internals -----------------------------------------------------------
    def _prepare(
        self, a: MatrixLike, b: MatrixLike, kernel_name: str, op: Optional[KernelOp]
    ) -> Tuple[KernelSpec, DenseMatrix, DenseMatrix, Tuple[int, int], Tuple[int, ...]]:
        """Resolve the kernel and validate operands; touches no device memory."""
        spec = self.catalog.resolve(kernel_name, op)
        a = as_matrix(a)
        b = as_matrix(b)
        if spec.op is KernelOp.DOT:
            check_dot_operands(a, b)
            out_shape = a.shape
            scalars: Tuple[int, ...] = (len(a),)
        else:
            check_matmul_operands(a, b)
            out_shape = matmul_output_shape(a, b)
            scalars = (a.rows, a.cols, b.cols)
        if a.dtype != spec.dtype:
            raise LayoutIncompatible(
                f"kernel '{spec.name}' expects {spec.dtype} elements, operands are {a.dtype}"
            )
        return spec, a, b, out_shape, scalars

    def _run(self, a: MatrixLike, b: MatrixLike, kernel_name: str, op: Optional[KernelOp]) -> DispatchResult:
        t0 = time.perf_counter()
        device = self.device
        spec, a, b, out_shape, scalars = self._prepare(a, b, kernel_name, op)
        library = self.library
        if not library.has_function(spec.entry_point):
            raise UnknownKernel(f"kernel '{spec.entry_point}' is not in the {device.name} library")

        rows, cols = out_shape
        count = rows * cols
        itemsize = spec.dtype.itemsize
        buffers: List[DeviceBuffer] = []
        try:
            buffers.append(device.allocate(a.nbytes, host_data=a.elements))
            buffers.append(device.allocate(b.nbytes, host_data=b.elements))
            buffers.append(device.allocate(count * itemsize))

            pipeline = device.new_pipeline(library, spec.entry_point)
            tile = library.tile if spec.tiled else None
            if tile is not None and tile * tile > pipeline.max_threads_per_group:
                raise PipelineCreationFailed(
                    f"{spec.name} needs a {tile}x{tile} group but {device.name} allows "
                    f"{pipeline.max_threads_per_group} threads per group"
                )
            grid = dot_grid(count) if spec.op is KernelOp.DOT else matmul_grid(rows, cols)
            geometry = compute_launch_geometry(
                grid,
                pipeline.execution_width,
                pipeline.max_threads_per_group,
                tile=tile,
            )
            _log.debug(
                f"{spec.name}: grid={geometry.grid} group={geometry.group} "
                f"(simd={pipeline.execution_width}, max={pipeline.max_threads_per_group})"
            )

            kernel_s = device.submit(pipeline, buffers, scalars, geometry)

            result = buffers[2]
            reported = result.length // itemsize
            if reported != count or result.length % itemsize:
                raise ReadbackSizeMismatch(
                    f"{spec.name}: device reports {result.length} bytes, expected {count} x {itemsize}"
                )
            values = result.read(spec.dtype)
            if values.size != count:
                raise ReadbackSizeMismatch(f"{spec.name}: read {values.size} elements, expected {count}")
            output = DenseMatrix(rows, cols, values)
        except Exception as e:
            _log.warning(f"dispatch of '{kernel_name}' on {device.name} failed: {e}")
            raise
        finally:
            for buf in buffers:
                buf.release()

        total_s = time.perf_counter() - t0
        _log.debug(f"{spec.name}: kernel {kernel_s * 1e3:.3f} ms, total {total_s * 1e3:.3f} ms")
        return DispatchResult(output, spec.name, geometry, kernel_s, total_s)


# Global dispatcher instance
_dispatcher: Optional[AcceleratorDispatcher] = None
_dispatcher_lock = threading.Lock()


def get_dispatcher() -> AcceleratorDispatcher:
    """Get the process-wide dispatcher bound to the default device."""
    global _dispatcher
    with _dispatcher_lock:
        if _dispatcher is None:
            _dispatcher = AcceleratorDispatcher()
        return _dispatcher


def set_dispatcher(dispatcher: Optional[AcceleratorDispatcher]) -> None:
    """Replace the process-wide dispatcher (None resets to the default on next use)."""
    global _dispatcher
    with _dispatcher_lock:
        _dispatcher = dispatcher


__all__ = ["AcceleratorDispatcher", "DispatchResult", "get_dispatcher", "set_dispatcher"]
