"""Thread-grid sizing for accelerator launches.

Pure functions of (problem size, device limits) so they can be tested without
a device. Grids are expressed as (x, y, z) with x walking the fastest-varying
output axis: vector index for dot products, output column for matmul.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Dim3 = Tuple[int, int, int]


@dataclass(frozen=True)
class LaunchGeometry:
    grid: Dim3  # logical threads, one per output element
    group: Dim3  # threads per group

    @property
    def padded_grid(self) -> Dim3:
        """Global size rounded up to a whole number of groups on every axis."""
        return tuple(_round_up(g, t) for g, t in zip(self.grid, self.group))  # type: ignore[return-value]

    @property
    def group_count(self) -> Dim3:
        return tuple(_ceil_div(g, t) for g, t in zip(self.grid, self.group))  # type: ignore[return-value]

    @property
    def threads_per_group(self) -> int:
        x, y, z = self.group
        return x * y * z

    def global_size(self, dims: int) -> Tuple[int, ...]:
        return self.padded_grid[:dims]

    def local_size(self, dims: int) -> Tuple[int, ...]:
        return self.group[:dims]


def _ceil_div(a: int, b: int) -> int:
    return (a + b - 1) // b


def _round_up(a: int, b: int) -> int:
    return _ceil_div(a, b) * b


def dot_grid(length: int) -> Dim3:
    """One logical thread per vector element."""
    return (int(length), 1, 1)


def matmul_grid(rows: int, cols: int) -> Dim3:
    """Width follows output columns, height follows output rows."""
    return (int(cols), int(rows), 1)


def simd_group_width(execution_width: int, max_threads_per_group: int) -> int:
    """Largest divisor of the execution width that fits in one group."""
    if execution_width < 1 or max_threads_per_group < 1:
        raise ValueError(
            f"device limits must be positive (execution_width={execution_width}, "
            f"max_threads_per_group={max_threads_per_group})"
        )
    if execution_width <= max_threads_per_group:
        return execution_width
    for width in range(max_threads_per_group, 0, -1):
        if execution_width % width == 0:
            return width
    return 1


def threads_per_group(
    grid: Dim3,
    execution_width: int,
    max_threads_per_group: int,
    tile: Optional[int] = None,
) -> Dim3:
    """Pick a group shape for ``grid``.

    1-D grids use one SIMD-width row, ``(w, 1, 1)``. 2-D grids stack
    ``max_threads_per_group // w`` rows, clamped to the grid height. A ``tile``
    forces a square ``(tile, tile, 1)`` group for kernels staging tiles in
    local memory.
    """
    if tile is not None:
        if tile < 1 or tile * tile > max_threads_per_group:
            raise ValueError(f"tile {tile}x{tile} exceeds {max_threads_per_group} threads per group")
        return (tile, tile, 1)
    width = simd_group_width(execution_width, max_threads_per_group)
    _, height, _ = grid
    if height <= 1:
        return (width, 1, 1)
    rows = max(1, min(max_threads_per_group // width, height))
    return (width, rows, 1)


def compute_launch_geometry(
    grid: Dim3,
    execution_width: int,
    max_threads_per_group: int,
    tile: Optional[int] = None,
) -> LaunchGeometry:
    if any(int(g) < 1 for g in grid):
        raise ValueError(f"grid extents must be >= 1, got {grid}")
    grid = (int(grid[0]), int(grid[1]), int(grid[2]))
    group = threads_per_group(grid, execution_width, max_threads_per_group, tile)
    return LaunchGeometry(grid=grid, group=group)


__all__ = [
    "Dim3",
    "LaunchGeometry",
    "dot_grid",
    "matmul_grid",
    "simd_group_width",
    "threads_per_group",
    "compute_launch_geometry",
]
