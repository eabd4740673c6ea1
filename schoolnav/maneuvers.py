"""Turn-by-turn maneuvers from ordered waypoints.

Purpose:
- Collapse a walked point sequence into straight/left/right instructions.
- Emit up/down instructions for connector climbs between floors.

Turns are classified by the sign of the 2D cross product of consecutive
direction vectors: positive is left, negative is right, zero continues
straight.

Usage example:
    >>> from schoolnav.points import Waypoint
    >>> pts = [Waypoint(-1, 0, 0, 0), Waypoint(-1, 50, 0, 0), Waypoint(-1, 50, 50, 0)]
    >>> [m.instruction.value for m in generate_maneuvers(pts)]
    ['straight', 'left', 'straight']
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from schoolnav.connectors import is_linked_hop
from schoolnav.points import Point, label

# Coordinate units per building-distance unit.
DISTANCE_SCALE = 100.0
FLOOR_CHANGE_DISTANCE = 0.0

Vector = tuple[float, float]


class Instruction(str, Enum):
    STRAIGHT = "straight"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


class ManeuverError(ValueError):
    """Waypoints break the single-floor/linked-connector invariant."""


@dataclass(frozen=True, slots=True)
class Maneuver:
    """One instruction anchored at the point where it applies.

    Walk maneuvers built by the navigator anchor at grid-cell origins, so a
    room or connector on a walk carries its snapped coordinates. Up/down
    maneuvers anchor at the departing connector's own coordinates.
    """

    instruction: Instruction
    distance: float
    point: Point

    def to_dict(self) -> dict[str, Any]:
        return {
            "instruction": self.instruction.value,
            "distance": round(float(self.distance), 4),
            "point": {
                "id": int(self.point.id),
                "kind": self.point.kind.value,
                "label": label(self.point),
                "x": float(self.point.x),
                "y": float(self.point.y),
                "floor": int(self.point.floor),
            },
        }


def classify_turn(previous: Vector, current: Vector) -> Instruction:
    """Classify the change from `previous` to `current` direction.

    Assumes the y axis points up (counter-clockwise is positive). With
    screen-style coordinates where y grows downwards, callers must swap
    left and right.
    """
    cross = previous[0] * current[1] - previous[1] * current[0]
    if cross > 0:
        return Instruction.LEFT
    if cross < 0:
        return Instruction.RIGHT
    return Instruction.STRAIGHT


def generate_maneuvers(points: Sequence[Point]) -> list[Maneuver]:
    """Convert ordered waypoints into a minimal maneuver list.

    Args:
        points: Waypoints in walking order. Consecutive points on different
            floors must be connectors linked by the matching up/down id.

    Returns:
        Maneuvers in walking order; empty for fewer than two points.

    Raises:
        ManeuverError: On a floor change that is not a single linked
            connector hop.
    """
    if len(points) < 2:
        return []

    maneuvers: list[Maneuver] = []
    run_start: Point | None = None
    run_distance = 0.0
    prev_dir: Vector | None = None

    def flush_straight() -> None:
        nonlocal run_start, run_distance
        if run_start is not None and run_distance > 0:
            maneuvers.append(Maneuver(Instruction.STRAIGHT, run_distance, run_start))
        run_start = None
        run_distance = 0.0

    for prev, curr in zip(points, points[1:]):
        if curr.floor != prev.floor:
            if not is_linked_hop(prev, curr):
                raise ManeuverError(
                    f"Unexpected floor change {prev.floor} -> {curr.floor} between points "
                    f"{prev.id} and {curr.id}"
                )
            flush_straight()
            instruction = Instruction.UP if curr.floor > prev.floor else Instruction.DOWN
            maneuvers.append(Maneuver(instruction, FLOOR_CHANGE_DISTANCE, prev))
            prev_dir = None
            continue

        direction = (float(curr.x - prev.x), float(curr.y - prev.y))
        if direction == (0.0, 0.0):
            continue

        step = math.hypot(*direction) / DISTANCE_SCALE

        if prev_dir is None:
            run_start, run_distance = prev, step
        else:
            turn = classify_turn(prev_dir, direction)
            if turn is Instruction.STRAIGHT:
                run_distance += step
            else:
                flush_straight()
                maneuvers.append(Maneuver(turn, 0.0, prev))
                run_start, run_distance = prev, step

        prev_dir = direction

    flush_straight()
    return maneuvers


def total_distance(maneuvers: Sequence[Maneuver]) -> float:
    """Sum of straight distances."""
    return sum(m.distance for m in maneuvers if m.instruction is Instruction.STRAIGHT)
