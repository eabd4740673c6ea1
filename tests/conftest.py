"""Pytest global fixtures and test isolation hooks."""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest

from schoolnav.api import STATE
from schoolnav.repository import StaticGridProvider, parse_points_payload


@pytest.fixture(autouse=True)
def reset_service_state() -> None:
    """Reset in-memory API state before each test."""
    STATE.inventory = None
    STATE.uploaded_grids = StaticGridProvider()
    STATE.asset_grids = None


@pytest.fixture()
def open_grid() -> np.ndarray:
    """Provide a simple reusable free-space grid."""
    return np.zeros((10, 10), dtype=np.uint8)


@pytest.fixture()
def corridor_grid() -> np.ndarray:
    """4x12 open hall; coordinates 0..59 x 0..19 at 5 units per cell."""
    return np.zeros((4, 12), dtype=np.uint8)


@pytest.fixture()
def building_payload() -> dict[str, Any]:
    """Three floors joined by one stairwell at the east end of each hall.

    Room 101 sits at the west end of floor 0, room 102 at the far corner of
    floor 0, room 301 at the south-west corner of floor 2.
    """
    return {
        "rooms": [
            {"id": 10, "room_number": 101, "x_coordinate": 2, "y_coordinate": 2, "floor_number": 0},
            {"id": 11, "room_number": "102", "x_coordinate": 55, "y_coordinate": 17, "floor_number": 0},
            {"id": 30, "room_number": "301", "x_coordinate": 2, "y_coordinate": 17, "floor_number": 2},
        ],
        "exits": [
            {
                "id": 50,
                "exit_name": "Main",
                "isEmergency": 1,
                "x_coordinate": 2,
                "y_coordinate": 12,
                "floor_number": 0,
            }
        ],
        "connections": [
            {"id": 1, "x_coordinate": 55, "y_coordinate": 2, "floor_number": 0, "up_connection_id": 2},
            {
                "id": 2,
                "x_coordinate": 55,
                "y_coordinate": 2,
                "floor_number": 1,
                "down_connection_id": 1,
                "up_connection_id": 3,
            },
            {"id": 3, "x_coordinate": 55, "y_coordinate": 2, "floor_number": 2, "down_connection_id": 2},
        ],
    }


@pytest.fixture()
def building(building_payload: dict[str, Any]):
    """Parsed inventory of `building_payload`."""
    return parse_points_payload(building_payload)


@pytest.fixture()
def building_grids(corridor_grid: np.ndarray) -> StaticGridProvider:
    """Same open hall on floors 0..2."""
    return StaticGridProvider({0: corridor_grid, 1: corridor_grid, 2: corridor_grid})
