"""Accelerator dispatch: device interface, grid sizing and the dispatcher."""
from __future__ import annotations

from .device import ComputeDevice, ComputePipeline, DeviceBuffer, KernelLibrary
from .dispatcher import AcceleratorDispatcher, DispatchResult, get_dispatcher, set_dispatcher
from .geometry import LaunchGeometry, compute_launch_geometry

__all__ = [
    "AcceleratorDispatcher",
    "DispatchResult",
    "get_dispatcher",
    "set_dispatcher",
    "ComputeDevice",
    "ComputePipeline",
    "DeviceBuffer",
    "KernelLibrary",
    "LaunchGeometry",
    "compute_launch_geometry",
]
