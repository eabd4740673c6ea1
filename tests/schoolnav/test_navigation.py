"""Unit tests for schoolnav.navigation."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from schoolnav.maneuvers import Instruction, total_distance
from schoolnav.navigation import (
    NavigationResult,
    NavigationSession,
    Navigator,
    build_segments,
    cells_to_points,
)
from schoolnav.points import Connector, Exit, PointInventory, Room, Waypoint
from schoolnav.repository import AssetGridProvider, StaticGridProvider


class DelayedGridProvider:
    """Grid provider with per-floor latency, failures and cancellation tracking."""

    def __init__(self, grids, delays=None, failing=()) -> None:
        self.grids = grids
        self.delays = delays or {}
        self.failing = set(failing)
        self.cancelled: list[int] = []
        self.completed: list[int] = []

    async def get_grid(self, floor: int):
        if floor in self.failing:
            raise OSError(f"disk error on floor {floor}")
        try:
            await asyncio.sleep(self.delays.get(floor, 0))
        except asyncio.CancelledError:
            self.cancelled.append(floor)
            raise
        self.completed.append(floor)
        return self.grids.get(floor)


def _navigate(inventory, provider, from_id: int, to_id: int):
    navigator = Navigator(inventory, provider)
    return asyncio.run(navigator.navigate(inventory.get(from_id), inventory.get(to_id)))


def _instructions(maneuvers) -> list[str]:
    return [m.instruction.value for m in maneuvers]


def test_same_floor_route(building: PointInventory, building_grids: StaticGridProvider) -> None:
    result = _navigate(building, building_grids, 10, 11)

    assert result is not None
    assert result.order == [0]
    floor0 = result.for_floor(0)
    assert floor0[0].instruction is Instruction.STRAIGHT
    assert floor0[0].point.id == 10
    assert total_distance(floor0) == pytest.approx(0.7)
    assert all(not result.for_floor(f) for f in (-1, 1, 2, 3))


def test_cross_floor_route_files_climbs_under_departure_floor(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    result = _navigate(building, building_grids, 10, 30)

    assert result is not None
    assert result.order == [0, 1, 2]

    floor0 = result.for_floor(0)
    assert _instructions(floor0) == ["straight", "up"]
    assert floor0[0].distance == pytest.approx(0.55)
    assert floor0[1].point.id == 1

    floor1 = result.for_floor(1)
    assert _instructions(floor1) == ["up"]
    assert floor1[0].point.id == 2

    floor2 = result.for_floor(2)
    assert floor2[0].point.id == 3
    assert Instruction.UP not in {m.instruction for m in floor2}
    assert total_distance(floor2) == pytest.approx(0.7)

    assert len(result.maneuvers) == 5
    assert result.maneuvers[1] is floor0


def test_reverse_route_has_same_walking_distance(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    forward = _navigate(building, building_grids, 10, 30)
    backward = _navigate(building, building_grids, 30, 10)

    assert backward is not None
    assert backward.order == [2, 1, 0]
    assert _instructions(backward.for_floor(1)) == ["down"]
    assert total_distance(backward.flatten()) == pytest.approx(total_distance(forward.flatten()))


def test_start_equals_end_gives_empty_route(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    result = _navigate(building, building_grids, 10, 10)

    assert result is not None
    assert result.order == [0]
    assert result.flatten() == []


def test_route_from_connector_starts_with_climb(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    result = _navigate(building, building_grids, 1, 30)

    assert result is not None
    assert result.order == [0, 1, 2]
    assert _instructions(result.for_floor(0)) == ["up"]


def test_missing_floor_grid_means_no_route(building: PointInventory, corridor_grid: np.ndarray) -> None:
    provider = StaticGridProvider({0: corridor_grid, 1: corridor_grid})
    assert _navigate(building, provider, 10, 30) is None


def test_unreachable_destination_means_no_route(building: PointInventory, corridor_grid: np.ndarray) -> None:
    split = corridor_grid.copy()
    split[:, 6] = 1
    provider = StaticGridProvider({0: split})
    assert _navigate(building, provider, 10, 11) is None


def test_missing_connector_chain_means_no_route(building_grids: StaticGridProvider) -> None:
    inventory = PointInventory(
        [
            Room(10, 2, 2, 0, room_number="101"),
            Room(30, 2, 17, 2, room_number="301"),
            Connector(1, 55, 2, 0, up_id=2),
            Connector(2, 55, 2, 1, down_id=1),
        ]
    )
    assert _navigate(inventory, building_grids, 10, 30) is None


def test_grid_load_failure_means_no_route(building: PointInventory, corridor_grid: np.ndarray) -> None:
    provider = DelayedGridProvider({0: corridor_grid, 2: corridor_grid}, failing={2})
    assert _navigate(building, provider, 10, 30) is None


def test_slow_floor_does_not_reorder_results(building: PointInventory, corridor_grid: np.ndarray) -> None:
    provider = DelayedGridProvider({0: corridor_grid, 2: corridor_grid}, delays={0: 0.05})

    result = _navigate(building, provider, 10, 30)

    assert result is not None
    assert provider.completed == [2, 0]
    assert result.order == [0, 1, 2]
    assert _instructions(result.for_floor(0)) == ["straight", "up"]


def test_first_failure_cancels_pending_walks(building: PointInventory, corridor_grid: np.ndarray) -> None:
    provider = DelayedGridProvider({2: corridor_grid}, delays={2: 5.0}, failing={0})

    assert _navigate(building, provider, 10, 30) is None
    assert provider.cancelled == [2]
    assert provider.completed == []


def test_build_segments_drops_zero_length_pairs(building: PointInventory) -> None:
    c1, c2, c3 = (building.get(i) for i in (1, 2, 3))

    segments = build_segments(c1, building.get(30), [c1, c2, c3])

    assert [(s.start.id, s.end.id) for s in segments] == [(1, 2), (2, 3), (3, 30)]
    assert [s.is_floor_change for s in segments] == [True, True, False]


def test_cells_to_points_resolves_occupants(building: PointInventory) -> None:
    start, end = building.get(10), building.get(11)

    points = cells_to_points([(0, 0), (1, 0), (2, 0), (2, 1)], start, end, building)

    assert isinstance(points[0], Room) and points[0].id == 10
    assert isinstance(points[1], Waypoint) and (points[1].x, points[1].y) == (0.0, 5.0)
    assert isinstance(points[2], Exit) and points[2].id == 50
    assert (points[2].x, points[2].y) == (0.0, 10.0)
    assert isinstance(points[3], Room) and points[3].id == 11
    assert (points[3].x, points[3].y) == (5.0, 10.0)


def test_navigation_result_indexing() -> None:
    result = NavigationResult.empty()
    result.add(-1, [])
    result.add(3, [])
    result.add(-1, [])

    assert len(result.maneuvers) == 5
    assert result.order == [-1, 3]
    with pytest.raises(ValueError):
        result.for_floor(4)


def test_navigation_session_steps_through_trip(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    result = _navigate(building, building_grids, 10, 30)
    session = NavigationSession(result)

    assert session.current.instruction is Instruction.STRAIGHT
    assert session.current_floor == 0
    assert not session.has_previous
    assert session.previous_step() is session.current

    assert session.next_step().instruction is Instruction.UP
    assert session.next_step().point.id == 2
    assert session.current_floor == 1
    assert _instructions(session.upcoming(2)) == ["up", "straight"]

    while session.has_next:
        session.next_step()
    assert session.current_floor == 2
    assert session.next_step() is session.current

    assert session.floor_path(0) == [(0.0, 0.0), (55.0, 2.0)]


def test_navigation_session_on_empty_trip() -> None:
    result = NavigationResult.empty()
    result.add(1, [])
    session = NavigationSession(result)

    assert session.current is None
    assert session.current_floor == 1
    assert session.next_step() is None
    assert session.upcoming() == []


@pytest.mark.parametrize(
    "content",
    ['{"rows": 4, "cols": 12}', '{"grid": [[0, 0]], "rows": null, "cols": 2}'],
)
def test_corrupt_grid_asset_means_no_route(tmp_path, building: PointInventory, content: str) -> None:
    (tmp_path / "floor_0.json").write_text(content, encoding="utf-8")

    assert _navigate(building, AssetGridProvider(tmp_path), 10, 11) is None


def test_walk_anchors_snap_to_lattice_while_climbs_keep_connector_coordinates(
    building: PointInventory, building_grids: StaticGridProvider
) -> None:
    result = _navigate(building, building_grids, 11, 30)

    floor0 = result.for_floor(0)
    assert (floor0[0].point.id, floor0[0].point.x, floor0[0].point.y) == (11, 55.0, 15.0)
    climb = floor0[-1]
    assert climb.instruction is Instruction.UP
    assert (climb.point.id, climb.point.x, climb.point.y) == (1, 55.0, 2.0)
