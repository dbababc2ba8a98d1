"""Central environment configuration utilities for kernparity.

Provides typed accessors, a registry of known KERNPARITY_* variables, and
helpers to introspect the current effective configuration. Every module reads
its knobs through ``get`` so tests can stub them with monkeypatch.setenv.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass(frozen=True)
class EnvVarMeta:
    name: str
    description: str
    default: Any
    parser: Callable[[str], Any]
    choices: Optional[List[str]] = None
    category: str = "general"


def _parse_int(val: str) -> int:
    try:
        return int(val)
    except Exception:
        return 0


def _parse_float(val: str) -> float:
    return float(val)


def _identity(val: str) -> str:
    return val


_REGISTRY: Dict[str, EnvVarMeta] = {
    # Logging
    "KERNPARITY_LOG_LEVEL": EnvVarMeta(
        name="KERNPARITY_LOG_LEVEL",
        description="Override log verbosity (DEBUG,INFO,WARNING,ERROR)",
        default="INFO",
        parser=_identity,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        category="logging",
    ),
    # Accelerator
    "KERNPARITY_OPENCL_DEVICE_INDEX": EnvVarMeta(
        name="KERNPARITY_OPENCL_DEVICE_INDEX",
        description="Select OpenCL device by flattened index across platforms",
        default="0",
        parser=_parse_int,
        category="accelerator",
    ),
    "KERNPARITY_KERNEL_DIR": EnvVarMeta(
        name="KERNPARITY_KERNEL_DIR",
        description="Directory holding the .cl kernel library (defaults to the bundled one)",
        default="",
        parser=_identity,
        category="accelerator",
    ),
    "KERNPARITY_OPENCL_BUILD_OPTIONS": EnvVarMeta(
        name="KERNPARITY_OPENCL_BUILD_OPTIONS",
        description="Extra options appended when building the kernel library",
        default="",
        parser=_identity,
        category="accelerator",
    ),
    "KERNPARITY_TILE": EnvVarMeta(
        name="KERNPARITY_TILE",
        description="Tile edge (threads per group axis) for matmul_tiled",
        default="16",
        parser=_parse_int,
        category="accelerator",
    ),
    # CPU backends
    "KERNPARITY_WORKERS": EnvVarMeta(
        name="KERNPARITY_WORKERS",
        description="Worker threads for the parallel CPU backend (0 = one per logical CPU)",
        default="0",
        parser=_parse_int,
        category="cpu",
    ),
    "KERNPARITY_PARALLEL_MIN_CHUNK": EnvVarMeta(
        name="KERNPARITY_PARALLEL_MIN_CHUNK",
        description="Minimum number of elements handed to one parallel worker",
        default="16384",
        parser=_parse_int,
        category="cpu",
    ),
    # Parity / benchmark
    "KERNPARITY_PARITY_TOLERANCE": EnvVarMeta(
        name="KERNPARITY_PARITY_TOLERANCE",
        description="Absolute tolerance used when comparing floating point outputs",
        default="0.01",
        parser=_parse_float,
        category="parity",
    ),
    "KERNPARITY_BENCH_WARMUP": EnvVarMeta(
        name="KERNPARITY_BENCH_WARMUP",
        description="Untimed warmup iterations per backend",
        default="1",
        parser=_parse_int,
        category="benchmark",
    ),
    "KERNPARITY_BENCH_RUNS": EnvVarMeta(
        name="KERNPARITY_BENCH_RUNS",
        description="Timed iterations per backend",
        default="3",
        parser=_parse_int,
        category="benchmark",
    ),
}


def get(name: str) -> Any:
    meta = _REGISTRY.get(name)
    if not meta:
        return os.environ.get(name)
    raw = os.environ.get(name, str(meta.default))
    try:
        return meta.parser(raw)
    except Exception:
        return meta.parser(str(meta.default))


def as_dict(include_unset: bool = False) -> Dict[str, Any]:
    data = {}
    for k in _REGISTRY:
        raw = os.environ.get(k)
        if raw is None and not include_unset:
            continue
        data[k] = get(k)
    return data


def describe() -> List[Dict[str, Any]]:
    info = []
    for meta in _REGISTRY.values():
        info.append(
            {
                "name": meta.name,
                "category": meta.category,
                "default": meta.default,
                "current": get(meta.name),
                "description": meta.description,
                "choices": meta.choices or [],
            }
        )
    return sorted(info, key=lambda x: (x["category"], x["name"]))


# Runtime overrides registry (set via set()) for introspection.
_OVERRIDES: Dict[str, Any] = {}
_SET_LOCK = threading.Lock()


def set(name: str, value: Any) -> None:
    """Set an environment variable (stringifying value) and record the override."""
    with _SET_LOCK:
        os.environ[name] = str(value)
        _OVERRIDES[name] = value


def overrides() -> Dict[str, Any]:
    return dict(_OVERRIDES)


__all__ = ["get", "as_dict", "describe", "set", "overrides", "EnvVarMeta"]
