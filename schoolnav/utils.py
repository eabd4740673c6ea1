"""Utility helpers shared across schoolnav modules.

Purpose:
- Convert between building coordinates and grid cells.
- Convert cell paths and grids to JSON-safe payload types.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from schoolnav.grid import GRID_SCALE, coord_to_cell


def point_to_cell(x: float, y: float, scale: int = GRID_SCALE) -> tuple[int, int]:
    """Map building coordinates `(x, y)` to grid cell `(row, col)`."""
    if scale <= 0:
        raise ValueError("scale must be > 0")
    return coord_to_cell(y, scale), coord_to_cell(x, scale)


def cell_to_coords(cell: tuple[int, int], scale: int = GRID_SCALE) -> tuple[float, float]:
    """Map grid cell `(row, col)` to the building coordinates `(x, y)` of its origin."""
    if scale <= 0:
        raise ValueError("scale must be > 0")
    row, col = cell
    return float(col * scale), float(row * scale)


def to_serializable_path(path: Iterable[tuple[int, int]]) -> list[dict[str, int]]:
    """Convert `(row, col)` tuples to JSON-friendly dictionary objects."""
    return [{"row": int(r), "col": int(c)} for r, c in path]


def json_grid(grid: np.ndarray) -> list[list[int]]:
    """Convert a numpy walkability grid to nested Python int lists."""
    if not isinstance(grid, np.ndarray) or grid.ndim != 2:
        raise ValueError("grid must be a 2D numpy array")
    return grid.astype(int).tolist()
