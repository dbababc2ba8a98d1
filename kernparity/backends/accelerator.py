"""
Accelerator backend: adapts the AcceleratorDispatcher to the Backend
interface so the parity harness and benchmark runner can treat all three
execution targets alike.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..accelerator.dispatcher import AcceleratorDispatcher, get_dispatcher
from ..errors import AcceleratorError, UnknownKernel
from ..kernels import KernelOp
from ..matrix import DenseMatrix, MatrixLike, as_matrix
from .base import Backend, logger


class AcceleratorBackend(Backend):
    """Runs catalog kernels through an AcceleratorDispatcher.

    Without an explicit ``kernel_name`` the catalog's untiled kernel for the
    operand element type is used.
    """

    def __init__(self, dispatcher: Optional[AcceleratorDispatcher] = None):
        super().__init__("accelerator")
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> AcceleratorDispatcher:
        if self._dispatcher is None:
            self._dispatcher = get_dispatcher()
        return self._dispatcher

    def initialize(self) -> bool:
        if self._initialized:
            return self.capabilities.available
        try:
            device = self.dispatcher.device
            self.capabilities.available = True
            self.capabilities.device_count = 1
            self.capabilities.device_names = [device.name]
            logger.info(f"[accelerator] Using device {device.name}")
        except AcceleratorError as e:
            self.capabilities.available = False
            self.capabilities.error_msg = str(e)
        self._initialized = True
        return self.capabilities.available

    def get_device_info(self) -> Dict[str, Any]:
        info = super().get_device_info()
        if self.capabilities.available:
            info["metadata"] = self.dispatcher.device.metadata()
        return info

    def kernel_for(self, op: KernelOp, a: MatrixLike, kernel_name: Optional[str]) -> str:
        if kernel_name:
            return kernel_name
        dtype = as_matrix(a).dtype
        spec = self.dispatcher.catalog.find(op, dtype)
        if spec is None:
            raise UnknownKernel(f"no {op.value} kernel for element type {dtype}")
        return spec.name

    def dot(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        return self.dispatcher.dot(a, b, self.kernel_for(KernelOp.DOT, a, kernel_name))

    def matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        return self.dispatcher.matmul(a, b, self.kernel_for(KernelOp.MATMUL, a, kernel_name))


__all__ = ["AcceleratorBackend"]
