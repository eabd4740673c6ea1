"""A* pathfinding on floor walkability grids.

Purpose:
- Compute shortest 4-connected routes that keep away from walls.
- Substitute the nearest walkable cell for blocked or off-grid endpoints.

Cells are `(row, col)` tuples.

Usage example:
    >>> import numpy as np
    >>> from schoolnav.pathfinding import find_path
    >>> grid = np.array([[0, 0, 0], [0, 1, 0], [0, 0, 0]], dtype=np.uint8)
    >>> find_path(grid, (0, 0), (2, 2))
    [(0, 0), (1, 0), (2, 0), (2, 1), (2, 2)]
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections import deque

import numpy as np

from schoolnav.grid import MAX_PENALTY, PENALTY_PER_WALL, validate_grid, wall_penalty_map

logger = logging.getLogger(__name__)

GridCell = tuple[int, int]

# (d_row, d_col); the order decides BFS ties.
DIRECTIONS: tuple[GridCell, ...] = ((1, 0), (0, 1), (-1, 0), (0, -1))


def _heuristic(a: GridCell, b: GridCell) -> float:
    """Manhattan distance, admissible since every step costs at least 1."""
    return float(abs(a[0] - b[0]) + abs(a[1] - b[1]))


def _in_bounds(cell: GridCell, shape: tuple[int, int]) -> bool:
    return 0 <= cell[0] < shape[0] and 0 <= cell[1] < shape[1]


def _neighbors(cell: GridCell, grid: np.ndarray) -> list[GridCell]:
    """Return walkable 4-connected neighbors."""
    r, c = cell
    result: list[GridCell] = []
    for dr, dc in DIRECTIONS:
        nbr = (r + dr, c + dc)
        if _in_bounds(nbr, grid.shape) and grid[nbr] == 0:
            result.append(nbr)
    return result


def astar(
    grid: np.ndarray,
    start: GridCell,
    goal: GridCell,
    max_penalty: float = MAX_PENALTY,
    penalty_per_wall: float = PENALTY_PER_WALL,
) -> list[GridCell] | None:
    """Compute a wall-averse shortest path via A*.

    Args:
        grid: 2D walkability grid, 0 = walkable, non-zero = blocked.
        start: Start cell `(row, col)`.
        goal: Goal cell `(row, col)`.
        max_penalty: Penalty for entering a cell that touches a wall.
        penalty_per_wall: Penalty decrease per ring of clearance.

    Returns:
        Cells from start to goal, or None if the goal is unreachable.

    Raises:
        ValueError: If grid is malformed or start/goal are off-grid or blocked.
    """
    occupancy = validate_grid(grid)

    start = (int(start[0]), int(start[1]))
    goal = (int(goal[0]), int(goal[1]))

    if not _in_bounds(start, occupancy.shape):
        raise ValueError("Start is out of grid bounds")
    if not _in_bounds(goal, occupancy.shape):
        raise ValueError("Goal is out of grid bounds")
    if occupancy[start] != 0:
        raise ValueError("Start cell is blocked")
    if occupancy[goal] != 0:
        raise ValueError("Goal cell is blocked")

    if start == goal:
        return [start]

    penalty = wall_penalty_map(occupancy, max_penalty=max_penalty, penalty_per_wall=penalty_per_wall)

    # Counter keeps equal-f entries in insertion order.
    counter = itertools.count()
    open_heap: list[tuple[float, int, GridCell]] = []
    heapq.heappush(open_heap, (_heuristic(start, goal), next(counter), start))

    came_from: dict[GridCell, GridCell] = {}
    g_score: dict[GridCell, float] = {start: 0.0}
    closed: set[GridCell] = set()

    while open_heap:
        _, _, current = heapq.heappop(open_heap)

        if current in closed:
            continue

        if current == goal:
            path = [current]
            while current in came_from:
                current = came_from[current]
                path.append(current)
            path.reverse()
            logger.debug("A* expanded %d cells, path length %d", len(closed), len(path))
            return path

        closed.add(current)

        for neighbor in _neighbors(current, occupancy):
            if neighbor in closed:
                continue

            tentative_g = g_score[current] + 1.0 + float(penalty[neighbor])
            if tentative_g < g_score.get(neighbor, float("inf")):
                came_from[neighbor] = current
                g_score[neighbor] = tentative_g
                f = tentative_g + _heuristic(neighbor, goal)
                heapq.heappush(open_heap, (f, next(counter), neighbor))

    logger.debug("A* exhausted %d cells without reaching %s", len(closed), goal)
    return None


def nearest_walkable(grid: np.ndarray, cell: GridCell) -> GridCell | None:
    """Find the walkable cell closest to `cell` in 4-connected hops.

    Off-grid cells are clamped onto the grid first; per axis the clamp lies
    on every shortest hop route, so hop distances are preserved. BFS walks
    through blocked cells but only accepts walkable ones; ties follow
    discovery order.

    Returns:
        The cell itself if already walkable, the nearest walkable cell, or
        None if the grid has no walkable cell at all.
    """
    occupancy = validate_grid(grid)
    rows, cols = occupancy.shape

    origin = (
        min(max(int(cell[0]), 0), rows - 1),
        min(max(int(cell[1]), 0), cols - 1),
    )
    if occupancy[origin] == 0:
        return origin

    queue: deque[GridCell] = deque([origin])
    visited: set[GridCell] = {origin}

    while queue:
        r, c = queue.popleft()
        for dr, dc in DIRECTIONS:
            nbr = (r + dr, c + dc)
            if not _in_bounds(nbr, occupancy.shape) or nbr in visited:
                continue
            if occupancy[nbr] == 0:
                return nbr
            visited.add(nbr)
            queue.append(nbr)

    return None


def find_path(grid: np.ndarray, start: GridCell, goal: GridCell) -> list[GridCell] | None:
    """Route between two cells, snapping blocked/off-grid endpoints first.

    Returns:
        Cells from the (substituted) start to the (substituted) goal, or None
        when no walkable cell or no connecting route exists.

    Raises:
        ValueError: If grid is malformed.
    """
    occupancy = validate_grid(grid)

    resolved_start = nearest_walkable(occupancy, start)
    resolved_goal = nearest_walkable(occupancy, goal)
    if resolved_start is None or resolved_goal is None:
        logger.warning("Grid has no walkable cell; cannot route %s -> %s", start, goal)
        return None

    if resolved_start != tuple(start) or resolved_goal != tuple(goal):
        logger.debug(
            "Snapped endpoints %s -> %s to %s -> %s", start, goal, resolved_start, resolved_goal
        )

    return astar(occupancy, resolved_start, resolved_goal)


def path_length(path: list[GridCell]) -> int:
    """Number of unit steps in a cell path."""
    return max(0, len(path) - 1)
