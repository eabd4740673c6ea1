"""Addressable building locations used by the navigation engine.

Purpose:
- Model rooms, exits, floor connectors and synthetic path waypoints.
- Provide an immutable point inventory with id and per-floor lookup.

Every point kind is a frozen dataclass carrying a `kind` tag; code that
behaves differently per kind matches on the class.

Usage example:
    >>> from schoolnav.points import Connector, PointInventory, Room
    >>> inventory = PointInventory([Room(1, 10.0, 20.0, 0, room_number="101")])
    >>> inventory.get(1).room_number
    '101'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterable, Iterator

MIN_FLOOR = -1
MAX_FLOOR = 3
WAYPOINT_ID = -1


class PointKind(str, Enum):
    """Closed set of point kinds."""

    ROOM = "room"
    EXIT = "exit"
    CONNECTOR = "connector"
    WAYPOINT = "waypoint"


@dataclass(frozen=True, slots=True)
class Room:
    """Classroom, office or any other room with a display number."""

    id: int
    x: float
    y: float
    floor: int
    room_number: str = ""
    description: str = ""
    neighbors: tuple[int, ...] = ()

    kind: ClassVar[PointKind] = PointKind.ROOM


@dataclass(frozen=True, slots=True)
class Exit:
    """Building exit, optionally an emergency exit."""

    id: int
    x: float
    y: float
    floor: int
    exit_name: str = ""
    is_emergency: bool = False
    description: str = ""
    neighbors: tuple[int, ...] = ()

    kind: ClassVar[PointKind] = PointKind.EXIT


@dataclass(frozen=True, slots=True)
class Connector:
    """Stairway or elevator landing linked to the floors below/above.

    `down_id` / `up_id` are the ids of the connector directly below/above.
    They are the only links between floors.
    """

    id: int
    x: float
    y: float
    floor: int
    down_id: int | None = None
    up_id: int | None = None
    description: str = ""
    neighbors: tuple[int, ...] = ()

    kind: ClassVar[PointKind] = PointKind.CONNECTOR

    @property
    def is_floor_bottom(self) -> bool:
        return self.down_id is None

    @property
    def is_floor_top(self) -> bool:
        return self.up_id is None

    def link_towards(self, floor: int) -> int | None:
        """Return the link id to follow when heading to `floor`."""
        if floor > self.floor:
            return self.up_id
        if floor < self.floor:
            return self.down_id
        return None


@dataclass(frozen=True, slots=True)
class Waypoint:
    """Synthetic point for a path cell no known location occupies."""

    id: int
    x: float
    y: float
    floor: int
    description: str = ""
    neighbors: tuple[int, ...] = ()

    kind: ClassVar[PointKind] = PointKind.WAYPOINT


Point = Room | Exit | Connector | Waypoint


def label(point: Point) -> str:
    """Human-readable display key for a point."""
    match point:
        case Room(room_number=number):
            return number or f"Room {point.id}"
        case Exit(exit_name=name, is_emergency=emergency):
            base = name or f"Exit {point.id}"
            return f"{base} (emergency)" if emergency else base
        case Connector():
            return point.description or f"Connector {point.id}"
        case Waypoint():
            return f"({point.x:g}, {point.y:g})"
    raise TypeError(f"Unsupported point type: {type(point).__name__}")


def validate_floor(floor: int) -> int:
    """Ensure floor index lies inside the supported building range."""
    if not MIN_FLOOR <= int(floor) <= MAX_FLOOR:
        raise ValueError(f"Floor {floor} is outside supported range {MIN_FLOOR}..{MAX_FLOOR}")
    return int(floor)


class PointInventory:
    """Read-only snapshot of all known points."""

    def __init__(self, points: Iterable[Point]) -> None:
        ordered = tuple(points)
        by_id: dict[int, Point] = {}
        for point in ordered:
            if point.id in by_id:
                raise ValueError(f"Duplicate point id {point.id}")
            validate_floor(point.floor)
            by_id[point.id] = point

        self._points = ordered
        self._by_id = by_id

    def __iter__(self) -> Iterator[Point]:
        return iter(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._by_id

    def get(self, point_id: int) -> Point | None:
        return self._by_id.get(point_id)

    def on_floor(self, floor: int) -> list[Point]:
        return [p for p in self._points if p.floor == floor]

    def connectors(self, floor: int | None = None) -> list[Connector]:
        """Connectors in inventory order, optionally limited to one floor."""
        return [
            p
            for p in self._points
            if isinstance(p, Connector) and (floor is None or p.floor == floor)
        ]

    def floors(self) -> list[int]:
        return sorted({p.floor for p in self._points})
