"""Exception taxonomy shared by every backend.

Local validation errors subclass ``ValueError``/``IndexError`` so callers that
only know the builtin types still catch them; accelerator failures subclass
``RuntimeError`` like the rest of the device plumbing.
"""

from __future__ import annotations


class KernparityError(Exception):
    """Base class for all kernparity errors."""


# --- local validation ---------------------------------------------------------


class ShapeMismatch(KernparityError, ValueError):
    """Element count does not agree with the declared rows x cols."""


class LengthMismatch(KernparityError, ValueError):
    """Dot product operands have different lengths."""


class DimensionMismatch(KernparityError, ValueError):
    """Matrix multiply operands have incompatible inner dimensions."""


class IndexOutOfBounds(KernparityError, IndexError):
    """A (row, col) address falls outside the matrix."""


class LayoutIncompatible(KernparityError, ValueError):
    """Element type cannot be laid out flat for the requested kernel."""


# --- accelerator path ---------------------------------------------------------


class AcceleratorError(KernparityError, RuntimeError):
    """Base class for failures raised while dispatching to a compute device."""


class DeviceUnavailable(AcceleratorError):
    pass


class UnknownKernel(AcceleratorError):
    pass


class PipelineCreationFailed(AcceleratorError):
    pass


class ReadbackSizeMismatch(AcceleratorError):
    pass


class ExecutionFailed(AcceleratorError):
    """The device reported an error while running a submitted unit of work."""


# --- parity -------------------------------------------------------------------


class ShapeDisagreement(KernparityError, ValueError):
    """Two backends returned results of different shapes."""


__all__ = [
    "KernparityError",
    "ShapeMismatch",
    "LengthMismatch",
    "DimensionMismatch",
    "IndexOutOfBounds",
    "LayoutIncompatible",
    "AcceleratorError",
    "DeviceUnavailable",
    "UnknownKernel",
    "PipelineCreationFailed",
    "ReadbackSizeMismatch",
    "ExecutionFailed",
    "ShapeDisagreement",
]
