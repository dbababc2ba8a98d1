"""
Compute device capability interface.

The dispatcher only talks to these abstractions, so a real accelerator
(PyOpenCL, see ``opencl.py``) and an in-process fake used by the tests are
interchangeable. Implementations must:

- allocate buffers in memory the host can address directly,
- resolve kernel entry points by name from a library built once per device,
- report a pipeline's native execution width and per-group thread limit,
- run a submitted unit of work to completion before ``submit`` returns.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .geometry import LaunchGeometry


class DeviceBuffer(ABC):
    """Opaque handle over a device-addressable, host-visible memory region."""

    @property
    @abstractmethod
    def length(self) -> int:
        """Size of the region in bytes, as reported by the device."""
        raise NotImplementedError

    @abstractmethod
    def read(self, dtype: np.dtype) -> np.ndarray:
        """Return a host copy of the whole region interpreted as ``dtype``."""
        raise NotImplementedError

    def release(self) -> None:
        """Return the region to the device. Safe to call twice."""


class KernelLibrary(ABC):
    """A compiled set of named kernel entry points."""

    #: Tile edge the tiled kernels were built for.
    tile: int = 16

    @abstractmethod
    def function_names(self) -> List[str]:
        raise NotImplementedError

    def has_function(self, name: str) -> bool:
        return name in self.function_names()


@dataclass
class ComputePipeline:
    """Execution state bound to one kernel entry point."""

    kernel_name: str
    execution_width: int
    max_threads_per_group: int
    handle: Any = None


class ComputeDevice(ABC):
    """Capability interface over one accelerator device."""

    name: str = "device"

    @abstractmethod
    def load_library(self) -> KernelLibrary:
        """Build or load the kernel library. Expensive; callers cache the result."""
        raise NotImplementedError

    @abstractmethod
    def allocate(self, nbytes: int, host_data: Optional[np.ndarray] = None) -> DeviceBuffer:
        """Allocate ``nbytes`` of shared memory, optionally initialised from ``host_data``."""
        raise NotImplementedError

    @abstractmethod
    def new_pipeline(self, library: KernelLibrary, function_name: str) -> ComputePipeline:
        """Bind ``function_name`` into a pipeline; raise PipelineCreationFailed on rejection."""
        raise NotImplementedError

    @abstractmethod
    def submit(
        self,
        pipeline: ComputePipeline,
        buffers: Sequence[DeviceBuffer],
        scalars: Sequence[int],
        geometry: LaunchGeometry,
    ) -> float:
        """Encode and run one unit of work, blocking until it completes.

        Buffers bind at indices 0..len(buffers)-1 and scalars follow them.
        Returns the device-measured execution time in seconds (0.0 if unknown).
        """
        raise NotImplementedError

    def metadata(self) -> Dict[str, Any]:
        return {"name": self.name}


__all__ = ["DeviceBuffer", "KernelLibrary", "ComputePipeline", "ComputeDevice"]
