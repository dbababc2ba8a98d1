"""
Top-level kernparity package exports (lightweight).

Importing the package does not touch PyOpenCL or spin up worker threads;
public symbols are imported on first access.
"""
from __future__ import annotations

import importlib
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "DenseMatrix",
    "sequential_dot",
    "parallel_dot",
    "accelerator_dot",
    "sequential_matmul",
    "parallel_matmul",
    "accelerator_matmul",
    "AcceleratorDispatcher",
    "ParityHarness",
    "compare",
    "errors",
]

_API = (
    "sequential_dot",
    "parallel_dot",
    "accelerator_dot",
    "sequential_matmul",
    "parallel_matmul",
    "accelerator_matmul",
)


def __getattr__(name: str) -> Any:  # lazy attribute loader
    if name == "DenseMatrix":
        from .matrix import DenseMatrix

        globals()["DenseMatrix"] = DenseMatrix
        return DenseMatrix
    if name in _API:
        api = importlib.import_module(__name__ + ".api")
        for fn in _API:
            globals()[fn] = getattr(api, fn)
        return globals()[name]
    if name == "AcceleratorDispatcher":
        from .accelerator.dispatcher import AcceleratorDispatcher

        globals()["AcceleratorDispatcher"] = AcceleratorDispatcher
        return AcceleratorDispatcher
    if name in ("ParityHarness", "compare"):
        from .parity import ParityHarness, compare

        globals()["ParityHarness"] = ParityHarness
        globals()["compare"] = compare
        return globals()[name]
    if name == "errors":
        _errors = importlib.import_module(__name__ + ".errors")
        globals()["errors"] = _errors
        return _errors
    raise AttributeError(f"module 'kernparity' has no attribute {name!r}")
