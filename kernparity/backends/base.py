"""
Base Backend Interface for kernparity.

Defines the interface every execution backend (sequential CPU, parallel CPU,
accelerator) follows, plus a manager that knows which backends are usable on
this machine. Backends never fall back to one another: a failing backend
raises and the caller decides what to do.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..matrix import DenseMatrix, MatrixLike
from ..utils.logging import get_logger as _get_logger

logger = _get_logger("kernparity.backends")


class BackendCapabilities:
    """
    Tracks capabilities and availability of a backend.
    """

    def __init__(self, name: str):
        self.name = name
        self.available = False
        self.device_count = 0
        self.device_names: List[str] = []
        self.workers = 1
        self.error_msg: Optional[str] = None

    def __repr__(self) -> str:
        if not self.available:
            return f"<BackendCapabilities({self.name}, unavailable: {self.error_msg})>"
        return f"<BackendCapabilities({self.name}, devices={self.device_names}, workers={self.workers})>"


class Backend(ABC):
    """
    Abstract base class for kernparity backends.

    Each backend must implement:
    - availability detection
    - ``dot`` (elementwise product of two equal-length vectors)
    - ``matmul`` (dense matrix product)
    """

    def __init__(self, name: str):
        self.name = name
        self.capabilities = BackendCapabilities(name)
        self._initialized = False

    @abstractmethod
    def initialize(self) -> bool:
        """
        Detect capabilities.

        Returns:
            True if backend is available and usable, False otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def dot(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        raise NotImplementedError

    @abstractmethod
    def matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        raise NotImplementedError

    def execute(self, op_name: str, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> DenseMatrix:
        """
        Execute ``op_name`` ("dotprod" or "matmul") on this backend.

        Raises:
            ValueError: for an op this backend does not implement
        """
        if op_name == "dotprod":
            fn = self.dot
        elif op_name == "matmul":
            fn = self.matmul
        else:
            raise ValueError(f"unsupported operation '{op_name}' on backend '{self.name}'")
        try:
            result = fn(a, b, kernel_name)
            logger.debug(f"[{self.name}] Executed '{op_name}'")
            return result
        except Exception as e:
            logger.error(f"[{self.name}] Failed to execute '{op_name}': {e}")
            raise

    def get_device_info(self) -> Dict[str, Any]:
        """Get detailed device information."""
        return {
            "name": self.name,
            "available": self.capabilities.available,
            "device_count": self.capabilities.device_count,
            "device_names": self.capabilities.device_names,
            "workers": self.capabilities.workers,
            "error": self.capabilities.error_msg,
        }

    def __repr__(self) -> str:
        status = "available" if self.capabilities.available else "unavailable"
        return f"<{self.__class__.__name__}({self.name}, {status})>"


class BackendManager:
    """
    Manages the registered backends.
    """

    def __init__(self):
        self._backends: Dict[str, Backend] = {}
        self._initialized = False

    def register_backend(self, backend: Backend):
        """Register a backend."""
        self._backends[backend.name] = backend
        logger.debug(f"Registered backend: {backend.name}")

    def initialize_all(self):
        """Initialize all registered backends."""
        for name, backend in self._backends.items():
            try:
                if backend.initialize():
                    logger.debug(f"Initialized backend: {name}")
                else:
                    logger.info(f"Backend unavailable: {name} ({backend.capabilities.error_msg})")
            except Exception as e:
                logger.error(f"Error initializing backend {name}: {e}")
        self._initialized = True

    def get_backend(self, name: str) -> Optional[Backend]:
        """Get a backend by name."""
        return self._backends.get(name)

    def names(self) -> List[str]:
        return list(self._backends)

    def list_available_backends(self) -> List[str]:
        """List all available (initialized) backends."""
        if not self._initialized:
            self.initialize_all()
        return [name for name, backend in self._backends.items() if backend.capabilities.available]

    def backend_details(self) -> Dict[str, Dict[str, Any]]:
        if not self._initialized:
            self.initialize_all()
        return {name: backend.get_device_info() for name, backend in self._backends.items()}


# Global backend manager instance
_global_manager = None


def get_backend_manager() -> BackendManager:
    """Get the global backend manager with the three standard backends registered."""
    global _global_manager
    if _global_manager is None:
        from .accelerator import AcceleratorBackend
        from .parallel import ParallelKernel
        from .sequential import SequentialKernel

        manager = BackendManager()
        manager.register_backend(SequentialKernel())
        manager.register_backend(ParallelKernel())
        manager.register_backend(AcceleratorBackend())
        _global_manager = manager
    return _global_manager
