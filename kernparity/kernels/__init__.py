"""
Kernel catalog for kernparity.

Maps the closed set of kernel names to the operation they implement, their
element type and the entry point inside the accelerator kernel library.
Names outside the catalog are rejected; there is never a fallback kernel.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np

from .. import config as _cfg
from ..errors import UnknownKernel


class KernelOp(Enum):
    """Operations a kernel can implement."""

    DOT = "dotprod"
    MATMUL = "matmul"


@dataclass(frozen=True)
class KernelSpec:
    """Information about one named kernel."""

    name: str
    op: KernelOp
    dtype: np.dtype
    source_file: str
    entry_point: str
    tiled: bool = False

    @property
    def type_name(self) -> str:
        return self.dtype.name


class KernelCatalog:
    """
    Registry mapping kernel names (and their legacy aliases) to KernelSpec.
    """

    def __init__(self, kernels_dir: Optional[Path] = None):
        override = _cfg.get("KERNPARITY_KERNEL_DIR")
        if kernels_dir is not None:
            self.kernels_dir = Path(kernels_dir)
        elif override:
            self.kernels_dir = Path(override)
        else:
            self.kernels_dir = Path(__file__).parent / "opencl"
        self._specs: Dict[str, KernelSpec] = {}
        self._aliases: Dict[str, str] = {}
        self._initialize_catalog()

    def _initialize_catalog(self):
        kernels = [
            ("dotprod_integer16", KernelOp.DOT, np.uint16, "dotprod.cl", False),
            ("dotprod_half_float", KernelOp.DOT, np.float16, "dotprod.cl", False),
            ("dotprod_float32", KernelOp.DOT, np.float32, "dotprod.cl", False),
            ("matmul_simple", KernelOp.MATMUL, np.float32, "matmul.cl", False),
            ("matmul_tiled", KernelOp.MATMUL, np.float32, "matmul.cl", True),
            ("matmul_half_float", KernelOp.MATMUL, np.float16, "matmul.cl", False),
            ("matmul_integer16", KernelOp.MATMUL, np.uint16, "matmul.cl", False),
        ]
        for name, op, dtype, filename, tiled in kernels:
            self.register(KernelSpec(name, op, np.dtype(dtype), filename, name, tiled))

        # Legacy benchmark names
        self.alias("dotprod_ushort", "dotprod_integer16")
        self.alias("dotprod_half", "dotprod_half_float")
        self.alias("matmul_w_half", "matmul_half_float")
        self.alias("matmul_w_u16", "matmul_integer16")

    def register(self, spec: KernelSpec) -> None:
        self._specs[spec.name] = spec

    def alias(self, alias: str, target: str) -> None:
        if target not in self._specs:
            raise UnknownKernel(f"cannot alias '{alias}' to unregistered kernel '{target}'")
        self._aliases[alias] = target

    def resolve(self, name: str, op: Optional[KernelOp] = None) -> KernelSpec:
        """Return the spec for ``name``; raise UnknownKernel if it is not registered.

        When ``op`` is given the kernel must implement that operation.
        """
        canonical = self._aliases.get(name, name)
        spec = self._specs.get(canonical)
        if spec is None:
            raise UnknownKernel(f"unknown kernel '{name}' (known: {', '.join(self.names())})")
        if op is not None and spec.op is not op:
            raise UnknownKernel(f"kernel '{name}' implements {spec.op.value}, not {op.value}")
        return spec

    def find(self, op: KernelOp, dtype, tiled: bool = False) -> Optional[KernelSpec]:
        """First kernel (by name) implementing ``op`` for ``dtype``."""
        dt = np.dtype(dtype)
        for spec in self.specs():
            if spec.op is op and spec.dtype == dt and spec.tiled == tiled:
                return spec
        return None

    def __contains__(self, name: str) -> bool:
        return self._aliases.get(name, name) in self._specs

    def names(self, op: Optional[KernelOp] = None) -> List[str]:
        return sorted(n for n, s in self._specs.items() if op is None or s.op is op)

    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def specs(self) -> List[KernelSpec]:
        return [self._specs[n] for n in self.names()]

    def source_files(self) -> List[Path]:
        files = sorted({s.source_file for s in self._specs.values()})
        return [self.kernels_dir / f for f in files]

    def get_kernel_source(self, source_file: str) -> Optional[str]:
        path = self.kernels_dir / source_file
        if path.exists():
            return path.read_text()
        return None


# Global catalog instance
_catalog = None


def get_kernel_catalog() -> KernelCatalog:
    """Get the global kernel catalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = KernelCatalog()
    return _catalog


__all__ = ["KernelOp", "KernelSpec", "KernelCatalog", "get_kernel_catalog"]
