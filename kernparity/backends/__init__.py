"""Backend facade with lazy imports.

Importing the package does not touch PyOpenCL; the accelerator backend is only
loaded when one of its names is requested.
"""
from __future__ import annotations

from typing import Any

__all__ = [
    "Backend",
    "BackendManager",
    "get_backend_manager",
    "SequentialKernel",
    "ParallelKernel",
    "AcceleratorBackend",
    "is_opencl_available",
]


def __getattr__(name: str) -> Any:
    if name in ("Backend", "BackendManager", "get_backend_manager"):
        from .base import Backend, BackendManager, get_backend_manager

        return {
            "Backend": Backend,
            "BackendManager": BackendManager,
            "get_backend_manager": get_backend_manager,
        }[name]
    if name == "SequentialKernel":
        from .sequential import SequentialKernel

        return SequentialKernel
    if name == "ParallelKernel":
        from .parallel import ParallelKernel

        return ParallelKernel
    if name == "AcceleratorBackend":
        from .accelerator import AcceleratorBackend

        return AcceleratorBackend
    if name == "is_opencl_available":
        from ..accelerator.opencl import is_opencl_available

        return is_opencl_available
    raise AttributeError(name)
