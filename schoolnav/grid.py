"""Floor walkability grids.

Purpose:
- Validate per-floor walkability matrices (0 = walkable, non-zero = blocked).
- Rasterize floor-plan images into coarse walkability grids.
- Compute the wall-proximity penalty used by the pathfinder.
- Export and load grids as JSON assets.

Usage example:
    >>> grid = image_to_walkability_grid(cv2.imread("assets/maps/Ground.png"))
    >>> export_grid_json("data/grids/floor_0.json", grid, cell_size=GRID_SCALE)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import cv2
import numpy as np

# Building coordinate units per grid cell.
GRID_SCALE = 5

MAX_PENALTY = 2.0
PENALTY_PER_WALL = 0.5


def validate_grid(grid: Any) -> np.ndarray:
    """Normalize a walkability grid to a 2D uint8 array of 0 (free) / 1 (blocked).

    Raises:
        ValueError: If grid is not a non-empty rectangular 2D matrix.
    """
    try:
        array = np.asarray(grid)
    except ValueError as exc:
        raise ValueError("Grid must be a rectangular 2D matrix") from exc

    if array.ndim != 2 or array.size == 0:
        raise ValueError("Grid must be a non-empty 2D array")
    if not np.issubdtype(array.dtype, np.number) and array.dtype != np.bool_:
        raise ValueError("Grid must contain numeric cell values")
    return (array != 0).astype(np.uint8)


def coord_to_cell(value: float, scale: int = GRID_SCALE) -> int:
    """Map one building coordinate to its grid index (floor division)."""
    return int(np.floor(float(value) / scale))


def wall_penalty_map(
    grid: np.ndarray,
    max_penalty: float = MAX_PENALTY,
    penalty_per_wall: float = PENALTY_PER_WALL,
) -> np.ndarray:
    """Compute the wall-proximity penalty of every cell.

    The radius of the first square ring around a cell that contains a blocked
    cell is its Chebyshev distance to the nearest wall, so one distance
    transform covers all rings. Cells outside the grid count as walls.

    Penalty per cell: `max(max_penalty - (radius - 1) * penalty_per_wall, 0)`.
    Values on blocked cells are meaningless and never read by the search.
    """
    occupancy = validate_grid(grid)
    if penalty_per_wall < 0 or max_penalty < 0:
        raise ValueError("max_penalty and penalty_per_wall must be >= 0")

    walkable = np.pad((occupancy == 0).astype(np.uint8), 1, mode="constant", constant_values=0)
    radius = cv2.distanceTransform(walkable, cv2.DIST_C, 3)[1:-1, 1:-1]
    radius = np.maximum(radius, 1.0)

    penalty = max_penalty - (radius - 1.0) * penalty_per_wall
    return np.maximum(penalty, 0.0).astype(np.float64)


def image_to_walkability_grid(
    image: np.ndarray,
    cell_size_px: int = GRID_SCALE,
    wall_threshold: int = 128,
) -> np.ndarray:
    """Rasterize a floor-plan image into a coarse walkability grid.

    Dark pixels (below `wall_threshold`) are walls. A cell is blocked if any
    pixel inside it is a wall.

    Args:
        image: Grayscale or BGR floor-plan image.
        cell_size_px: Pixels per grid cell.
        wall_threshold: Gray level separating walls from free space.

    Returns:
        uint8 grid, 1 = blocked, 0 = walkable.
    """
    if not isinstance(image, np.ndarray) or image.size == 0:
        raise ValueError("image must be a non-empty numpy array")
    if cell_size_px <= 0:
        raise ValueError("cell_size_px must be > 0")

    if image.ndim == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 2:
        gray = image
    else:
        raise ValueError("image must be 2D grayscale or 3-channel BGR")

    _, walls = cv2.threshold(gray.astype(np.uint8), wall_threshold - 1, 1, cv2.THRESH_BINARY_INV)

    height, width = walls.shape
    rows = int(np.ceil(height / cell_size_px))
    cols = int(np.ceil(width / cell_size_px))

    # Pad to a whole number of cells, then max-pool each cell block.
    padded = np.zeros((rows * cell_size_px, cols * cell_size_px), dtype=np.uint8)
    padded[:height, :width] = walls
    blocks = padded.reshape(rows, cell_size_px, cols, cell_size_px)
    return blocks.max(axis=(1, 3)).astype(np.uint8)


def export_grid_json(output_path: str | Path, grid: np.ndarray, cell_size: int = GRID_SCALE) -> str:
    """Export a walkability grid and metadata to a JSON file.

    Returns:
        String path to exported JSON file.
    """
    occupancy = validate_grid(grid)
    if cell_size <= 0:
        raise ValueError("cell_size must be > 0")

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "grid": occupancy.astype(int).tolist(),
        "rows": int(occupancy.shape[0]),
        "cols": int(occupancy.shape[1]),
        "cell_size": int(cell_size),
    }

    with output.open("w", encoding="utf-8") as f:
        json.dump(payload, f)

    return str(output)


def load_grid_json(path: str | Path) -> np.ndarray:
    """Load a grid exported by `export_grid_json` (or a bare nested list)."""
    with Path(path).open("r", encoding="utf-8") as f:
        payload = json.load(f)

    if not isinstance(payload, dict):
        return validate_grid(payload)

    if "grid" not in payload:
        raise ValueError(f"Grid file {path} has no 'grid' entry")
    grid = validate_grid(payload["grid"])

    if "rows" in payload and "cols" in payload:
        rows, cols = payload["rows"], payload["cols"]
        for value in (rows, cols):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"Grid file {path} declares non-integer rows/cols")
        if grid.shape != (rows, cols):
            raise ValueError(f"Grid shape {grid.shape} does not match declared rows/cols")
    return grid
