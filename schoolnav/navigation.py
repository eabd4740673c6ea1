"""Multi-floor navigation orchestrator.

Purpose:
- Route between two points on the same floor or across floors.
- Fan out per-floor grid searches concurrently and stitch their maneuvers
  into per-floor lists plus the order floors are visited in.
- Provide a per-trip session for stepping through the instructions.

A request either yields a complete `NavigationResult` or None ("no route");
partial results are never returned.

Usage example:
    >>> navigator = Navigator(inventory, AssetGridProvider("data/grids"))
    >>> result = asyncio.run(navigator.navigate(inventory.get(12), inventory.get(40)))
    >>> result.order
    [0, 1]
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from schoolnav.connectors import resolve_connector_chain
from schoolnav.grid import GRID_SCALE
from schoolnav.maneuvers import Maneuver, generate_maneuvers
from schoolnav.pathfinding import GridCell, find_path
from schoolnav.points import MAX_FLOOR, MIN_FLOOR, WAYPOINT_ID, Point, PointInventory, Waypoint, validate_floor
from schoolnav.repository import FloorGridProvider
from schoolnav.utils import cell_to_coords, point_to_cell

logger = logging.getLogger(__name__)


class NavigationState(str, Enum):
    IDLE = "idle"
    RESOLVING_CONNECTORS = "resolving-connectors"
    PATHFINDING = "pathfinding"
    STITCHING = "stitching"
    DONE = "done"
    FAILED = "failed"


class NoRouteError(Exception):
    """Internal signal that one navigation step found no route."""


@dataclass(frozen=True, slots=True)
class Segment:
    """One hop of a trip: a walk on one floor or a connector climb."""

    start: Point
    end: Point

    @property
    def is_floor_change(self) -> bool:
        return self.start.floor != self.end.floor

    @property
    def floor(self) -> int:
        return self.start.floor


@dataclass(slots=True)
class NavigationResult:
    """Per-floor maneuver lists (index `floor - MIN_FLOOR`) plus visit order.

    Anchors are mixed: walk maneuvers sit on the grid lattice
    (`cells_to_points`), floor-change maneuvers on the connector's stored
    coordinates.
    """

    maneuvers: list[list[Maneuver]]
    order: list[int]

    @classmethod
    def empty(cls) -> "NavigationResult":
        return cls(maneuvers=[[] for _ in range(MAX_FLOOR - MIN_FLOOR + 1)], order=[])

    def for_floor(self, floor: int) -> list[Maneuver]:
        return self.maneuvers[validate_floor(floor) - MIN_FLOOR]

    def add(self, floor: int, maneuvers: list[Maneuver]) -> None:
        """Append maneuvers to a floor and record the visit."""
        self.maneuvers[validate_floor(floor) - MIN_FLOOR].extend(maneuvers)
        if floor not in self.order:
            self.order.append(floor)

    def flatten(self) -> list[Maneuver]:
        """All maneuvers in traversal order."""
        return [m for floor in self.order for m in self.for_floor(floor)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "maneuvers": [[m.to_dict() for m in floor] for floor in self.maneuvers],
            "order": list(self.order),
        }


def build_segments(start: Point, end: Point, chain: list[Point]) -> list[Segment]:
    """Pair consecutive waypoints `[start, *chain, end]` into segments.

    Zero-length pairs (the start or end is itself a chain connector) are
    dropped.
    """
    waypoints = [start, *chain, end]
    segments: list[Segment] = []
    for a, b in zip(waypoints, waypoints[1:]):
        if a.id == b.id and a.floor == b.floor and a.id != WAYPOINT_ID:
            continue
        segments.append(Segment(a, b))
    return segments


def cells_to_points(
    cells: list[GridCell],
    start: Point,
    end: Point,
    inventory: PointInventory,
    scale: int = GRID_SCALE,
) -> list[Point]:
    """Resolve a cell path back to points on the lattice.

    The first and last cell carry the identity of `start`/`end`; inner cells
    carry the identity of an inventory point occupying the cell, else they
    become `Waypoint`s. All points are placed at the cell origin so that
    direction vectors stay axis-aligned.
    """
    floor = start.floor
    occupants: dict[GridCell, Point] = {}
    for point in inventory.on_floor(floor):
        occupants.setdefault(point_to_cell(point.x, point.y, scale), point)

    resolved: list[Point] = []
    last = len(cells) - 1
    for idx, cell in enumerate(cells):
        x, y = cell_to_coords(cell, scale)
        if idx == 0:
            owner: Point | None = start
        elif idx == last:
            owner = end
        else:
            owner = occupants.get(cell)

        if owner is None:
            resolved.append(Waypoint(id=WAYPOINT_ID, x=x, y=y, floor=floor))
        else:
            resolved.append(replace(owner, x=x, y=y))
    return resolved


class Navigator:
    """Computes turn-by-turn routes over an immutable point/grid snapshot."""

    def __init__(self, inventory: PointInventory, grid_provider: FloorGridProvider) -> None:
        self.inventory = inventory
        self.grid_provider = grid_provider

    async def _walk(self, segment: Segment) -> list[Maneuver]:
        """Grid search plus maneuver generation for one same-floor segment."""
        floor = segment.floor
        try:
            grid = await self.grid_provider.get_grid(floor)
        except (OSError, ValueError) as exc:
            raise NoRouteError(f"grid for floor {floor} failed to load: {exc}") from exc
        if grid is None:
            raise NoRouteError(f"no grid for floor {floor}")

        start_cell = point_to_cell(segment.start.x, segment.start.y)
        end_cell = point_to_cell(segment.end.x, segment.end.y)

        try:
            cells = await asyncio.to_thread(find_path, grid, start_cell, end_cell)
        except ValueError as exc:
            raise NoRouteError(f"malformed grid for floor {floor}: {exc}") from exc
        if cells is None:
            raise NoRouteError(f"no path on floor {floor} from {start_cell} to {end_cell}")

        points = cells_to_points(cells, segment.start, segment.end, self.inventory)
        return generate_maneuvers(points)

    async def _resolve_segments(self, segments: list[Segment]) -> list[list[Maneuver]]:
        """Resolve all segments, walks concurrently, preserving segment order.

        The first failure cancels every pending walk.
        """
        results: list[list[Maneuver] | None] = [None] * len(segments)
        for idx, segment in enumerate(segments):
            if segment.is_floor_change:
                results[idx] = generate_maneuvers([segment.start, segment.end])

        tasks: dict[asyncio.Task[list[Maneuver]], int] = {
            asyncio.create_task(self._walk(segment)): idx
            for idx, segment in enumerate(segments)
            if not segment.is_floor_change
        }

        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    results[tasks[task]] = task.result()
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        return [r if r is not None else [] for r in results]

    async def navigate(self, start: Point, end: Point) -> NavigationResult | None:
        """Compute per-floor maneuvers from `start` to `end`.

        Returns:
            NavigationResult, or None when no route exists or any step fails.
        """
        state = NavigationState.IDLE
        try:
            validate_floor(start.floor)
            validate_floor(end.floor)

            chain: list[Point] = []
            if start.floor != end.floor:
                state = NavigationState.RESOLVING_CONNECTORS
                connectors = resolve_connector_chain(self.inventory, start, end)
                if connectors is None:
                    raise NoRouteError(f"no connector chain from floor {start.floor} to {end.floor}")
                chain = list(connectors)

            state = NavigationState.PATHFINDING
            segments = build_segments(start, end, chain)
            per_segment = await self._resolve_segments(segments)

            state = NavigationState.STITCHING
            result = NavigationResult.empty()
            for segment, maneuvers in zip(segments, per_segment):
                result.add(segment.floor, maneuvers)
            if not result.order:
                result.add(start.floor, [])

            state = NavigationState.DONE
            logger.info(
                "Route %s -> %s: %d maneuvers over floors %s",
                start.id,
                end.id,
                len(result.flatten()),
                result.order,
            )
            return result
        except (NoRouteError, ValueError) as exc:
            logger.warning(
                "No route from %s to %s (%s -> %s): %s",
                start.id,
                end.id,
                state.value,
                NavigationState.FAILED.value,
                exc,
            )
            return None


@dataclass
class NavigationSession:
    """Caller-owned stepper over one trip's maneuvers.

    Created per trip and dropped when the trip completes or is cancelled.
    """

    result: NavigationResult
    index: int = 0
    steps: list[Maneuver] = field(init=False)

    def __post_init__(self) -> None:
        self.steps = self.result.flatten()
        self.index = min(max(self.index, 0), max(len(self.steps) - 1, 0))

    @property
    def current(self) -> Maneuver | None:
        return self.steps[self.index] if self.steps else None

    @property
    def current_floor(self) -> int | None:
        if self.current is not None:
            return self.current.point.floor
        return self.result.order[0] if self.result.order else None

    @property
    def has_next(self) -> bool:
        return self.index < len(self.steps) - 1

    @property
    def has_previous(self) -> bool:
        return self.index > 0

    def next_step(self) -> Maneuver | None:
        if self.has_next:
            self.index += 1
        return self.current

    def previous_step(self) -> Maneuver | None:
        if self.has_previous:
            self.index -= 1
        return self.current

    def upcoming(self, count: int = 3) -> list[Maneuver]:
        return self.steps[self.index : self.index + count]

    def floor_path(self, floor: int) -> list[tuple[float, float]]:
        """Anchor coordinates of one floor's maneuvers, for drawing."""
        return [(m.point.x, m.point.y) for m in self.result.for_floor(floor)]
