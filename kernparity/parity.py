"""
kernparity/parity.py

Cross-backend output parity checks.

``compare`` takes labelled results from two or more backends and checks every
pair: integer element types must match bit for bit, floating types must agree
elementwise within an absolute tolerance. Each pair reports the first flat
index where it disagrees, so a failing regression test points straight at the
offending element.

``ParityHarness`` runs the same operands through several backends and feeds
the outputs to ``compare``. It reports; it never raises on a numeric
disagreement, only on a shape disagreement.
"""

from __future__ import annotations

import itertools
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import config as _cfg
from .errors import ShapeDisagreement
from .matrix import DenseMatrix, MatrixLike, as_matrix
from .utils.logging import get_logger as _get_logger

_log = _get_logger("kernparity.parity")

_EXACT_KINDS = "iub"


def is_exact_dtype(dtype: Any) -> bool:
    """Integer element types compare bitwise; everything else approximately."""
    return np.dtype(dtype).kind in _EXACT_KINDS


def default_tolerance() -> float:
    return float(_cfg.get("KERNPARITY_PARITY_TOLERANCE"))


@dataclass
class PairComparison:
    left: str
    right: str
    exact: bool
    equal: bool
    first_mismatch: Optional[int] = None
    mismatches: int = 0
    max_abs_diff: float = 0.0

    def describe(self) -> str:
        if self.equal:
            return f"{self.left} == {self.right}"
        return (
            f"{self.left} != {self.right}: {self.mismatches} element(s) differ, "
            f"first at index {self.first_mismatch}, max |diff| {self.max_abs_diff:g}"
        )


@dataclass
class ParityReport:
    tolerance: float
    shape: Tuple[int, int]
    comparisons: List[PairComparison] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(c.equal for c in self.comparisons)

    def failures(self) -> List[PairComparison]:
        return [c for c in self.comparisons if not c.equal]

    def summary(self) -> str:
        if self.ok:
            return f"all {len(self.comparisons)} pair(s) agree"
        return "; ".join(c.describe() for c in self.failures())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "tolerance": self.tolerance,
            "shape": list(self.shape),
            "comparisons": [asdict(c) for c in self.comparisons],
        }


def _compare_pair(
    left: Tuple[str, DenseMatrix], right: Tuple[str, DenseMatrix], tolerance: float
) -> PairComparison:
    (lname, lm), (rname, rm) = left, right
    a = lm.elements
    b = rm.elements
    exact = is_exact_dtype(a.dtype) and is_exact_dtype(b.dtype)
    if exact:
        diff_mask = a != b
        if a.size:
            abs_diff = np.abs(a.astype(np.int64) - b.astype(np.int64))
        else:
            abs_diff = np.zeros(0)
    else:
        a64 = a.astype(np.float64)
        b64 = b.astype(np.float64)
        with np.errstate(invalid="ignore"):
            abs_diff = np.abs(a64 - b64)
        both_nan = np.isnan(a64) & np.isnan(b64)
        same_inf = np.isinf(a64) & (a64 == b64)
        diff_mask = ~(both_nan | same_inf) & ~(abs_diff <= tolerance)
        abs_diff = np.where(both_nan | same_inf, 0.0, abs_diff)
    bad = np.flatnonzero(diff_mask)
    max_abs = float(np.nanmax(abs_diff)) if abs_diff.size else 0.0
    return PairComparison(
        left=lname,
        right=rname,
        exact=exact,
        equal=bad.size == 0,
        first_mismatch=int(bad[0]) if bad.size else None,
        mismatches=int(bad.size),
        max_abs_diff=max_abs,
    )


def compare(results: Sequence[Tuple[str, MatrixLike]], tolerance: Optional[float] = None) -> ParityReport:
    """Compare every pair of labelled results.

    Raises:
        ValueError: fewer than two results
        ShapeDisagreement: two results differ in shape
    """
    if len(results) < 2:
        raise ValueError(f"parity needs at least two results, got {len(results)}")
    results = [(label, as_matrix(res)) for label, res in results]
    if tolerance is None:
        tolerance = default_tolerance()
    ref_label, ref = results[0]
    for label, res in results[1:]:
        if res.shape != ref.shape:
            raise ShapeDisagreement(f"{ref_label} produced {ref.shape} but {label} produced {res.shape}")
    report = ParityReport(tolerance=float(tolerance), shape=ref.shape)
    for left, right in itertools.combinations(results, 2):
        report.comparisons.append(_compare_pair(left, right, float(tolerance)))
    if not report.ok:
        _log.warning(f"parity check failed: {report.summary()}")
    return report


class ParityHarness:
    """Run identical operands through several backends and compare the outputs.

    ``backends`` is a sequence of Backend instances (see kernparity.backends).
    ``kernel_name`` is forwarded to every backend; CPU backends ignore it.
    """

    def __init__(self, backends: Sequence[Any], tolerance: Optional[float] = None):
        if len(backends) < 2:
            raise ValueError("ParityHarness needs at least two backends")
        self.backends = list(backends)
        self.tolerance = tolerance

    def collect(self, op_name: str, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None):
        a = as_matrix(a)
        b = as_matrix(b)
        return [(backend.name, backend.execute(op_name, a, b, kernel_name)) for backend in self.backends]

    def run_dot(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> ParityReport:
        return compare(self.collect("dotprod", a, b, kernel_name), self.tolerance)

    def run_matmul(self, a: MatrixLike, b: MatrixLike, kernel_name: Optional[str] = None) -> ParityReport:
        return compare(self.collect("matmul", a, b, kernel_name), self.tolerance)


__all__ = [
    "PairComparison",
    "ParityReport",
    "ParityHarness",
    "compare",
    "is_exact_dtype",
    "default_tolerance",
]
