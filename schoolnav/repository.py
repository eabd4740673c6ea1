"""Point inventory loading and floor grid providers.

Purpose:
- Parse the points backend payload (`rooms`, `exits`, `connections`) into an
  immutable `PointInventory`.
- Serve per-floor walkability grids from memory or from asset files.

Usage example:
    >>> inventory = load_points("data/points.json")
    >>> provider = AssetGridProvider("data/grids")
    >>> grid = asyncio.run(provider.get_grid(0))
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Protocol

import cv2
import numpy as np
from pydantic import BaseModel, Field, field_validator

from schoolnav.connectors import broken_links
from schoolnav.grid import GRID_SCALE, image_to_walkability_grid, load_grid_json, validate_grid
from schoolnav.points import Connector, Exit, PointInventory, Room

logger = logging.getLogger(__name__)


class _PointRecord(BaseModel):
    id: int
    x_coordinate: float
    y_coordinate: float
    floor_number: int
    description: str | None = None
    neighbors: list[int] = Field(default_factory=list)


class RoomRecord(_PointRecord):
    """Room row as served by the points backend."""

    room_number: str

    @field_validator("room_number", mode="before")
    @classmethod
    def _stringify_number(cls, value: Any) -> str:
        return str(value)

    def to_point(self) -> Room:
        return Room(
            id=self.id,
            x=self.x_coordinate,
            y=self.y_coordinate,
            floor=self.floor_number,
            room_number=self.room_number,
            description=self.description or "",
            neighbors=tuple(self.neighbors),
        )


class ExitRecord(_PointRecord):
    """Exit row as served by the points backend."""

    exit_name: str = ""
    isEmergency: bool = False

    def to_point(self) -> Exit:
        return Exit(
            id=self.id,
            x=self.x_coordinate,
            y=self.y_coordinate,
            floor=self.floor_number,
            exit_name=self.exit_name,
            is_emergency=self.isEmergency,
            description=self.description or "",
            neighbors=tuple(self.neighbors),
        )


class ConnectorRecord(_PointRecord):
    """Stair/elevator row as served by the points backend."""

    down_connection_id: int | None = None
    up_connection_id: int | None = None

    def to_point(self) -> Connector:
        return Connector(
            id=self.id,
            x=self.x_coordinate,
            y=self.y_coordinate,
            floor=self.floor_number,
            down_id=self.down_connection_id,
            up_id=self.up_connection_id,
            description=self.description or "",
            neighbors=tuple(self.neighbors),
        )


class PointsPayload(BaseModel):
    """All points grouped by kind."""

    rooms: list[RoomRecord] = Field(default_factory=list)
    exits: list[ExitRecord] = Field(default_factory=list)
    connections: list[ConnectorRecord] = Field(default_factory=list)


def parse_points_payload(payload: Mapping[str, Any]) -> PointInventory:
    """Build a validated inventory from the backend payload.

    Accepts either the bare `{rooms, exits, connections}` object or the
    backend packet envelope carrying it under `data`.

    Raises:
        ValueError: On schema errors, duplicate ids, out-of-range floors or
            connector links that do not resolve.
    """
    if "data" in payload and isinstance(payload["data"], Mapping):
        payload = payload["data"]

    parsed = PointsPayload.model_validate(payload)

    inventory = PointInventory(
        [r.to_point() for r in parsed.rooms]
        + [e.to_point() for e in parsed.exits]
        + [c.to_point() for c in parsed.connections]
    )

    problems = broken_links(inventory)
    if problems:
        raise ValueError("Invalid connector links: " + "; ".join(problems))

    logger.info(
        "Loaded %d points (%d rooms, %d exits, %d connectors)",
        len(inventory),
        len(parsed.rooms),
        len(parsed.exits),
        len(parsed.connections),
    )
    return inventory


def load_points(path: str | Path) -> PointInventory:
    """Load a point inventory from a JSON file."""
    with Path(path).open("r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ValueError("Points file must contain a JSON object")
    return parse_points_payload(payload)


def inventory_to_payload(inventory: PointInventory, floor: int | None = None) -> dict[str, Any]:
    """Serialize an inventory back into the backend payload shape."""
    rooms: list[dict[str, Any]] = []
    exits: list[dict[str, Any]] = []
    connections: list[dict[str, Any]] = []

    for point in inventory:
        if floor is not None and point.floor != floor:
            continue

        base = {
            "id": point.id,
            "x_coordinate": point.x,
            "y_coordinate": point.y,
            "floor_number": point.floor,
            "description": point.description or None,
            "neighbors": list(point.neighbors),
        }
        match point:
            case Room():
                rooms.append({**base, "room_number": point.room_number})
            case Exit():
                exits.append({**base, "exit_name": point.exit_name, "isEmergency": point.is_emergency})
            case Connector():
                connections.append(
                    {
                        **base,
                        "down_connection_id": point.down_id,
                        "up_connection_id": point.up_id,
                    }
                )

    return {"rooms": rooms, "exits": exits, "connections": connections}


def _freeze(grid: np.ndarray) -> np.ndarray:
    """Return a read-only copy so callers cannot mutate the cached snapshot."""
    frozen = np.array(grid, dtype=np.uint8, copy=True)
    frozen.flags.writeable = False
    return frozen


class FloorGridProvider(Protocol):
    """Source of per-floor walkability grids."""

    async def get_grid(self, floor: int) -> np.ndarray | None:
        """Return the floor's grid, or None if it is unavailable."""
        ...


class StaticGridProvider:
    """In-memory grids keyed by floor index."""

    def __init__(self, grids: Mapping[int, Any] | None = None) -> None:
        self._grids: dict[int, np.ndarray] = {}
        for floor, grid in (grids or {}).items():
            self.set_grid(floor, grid)

    def set_grid(self, floor: int, grid: Any) -> None:
        self._grids[int(floor)] = _freeze(validate_grid(grid))

    def floors(self) -> list[int]:
        return sorted(self._grids)

    async def get_grid(self, floor: int) -> np.ndarray | None:
        return self._grids.get(int(floor))


class ChainedGridProvider:
    """Ask several providers in order; the first grid found wins."""

    def __init__(self, *providers: FloorGridProvider) -> None:
        self.providers = providers

    async def get_grid(self, floor: int) -> np.ndarray | None:
        for provider in self.providers:
            grid = await provider.get_grid(floor)
            if grid is not None:
                return grid
        return None


class AssetGridProvider:
    """Grids loaded lazily from `floor_<n>.json` or `floor_<n>.png` assets.

    JSON assets are `export_grid_json` outputs; images are floor plans that
    get rasterized with `cell_size_px` pixels per cell. Loaded grids are
    cached for the provider's lifetime.
    """

    def __init__(self, directory: str | Path, cell_size_px: int = GRID_SCALE) -> None:
        if cell_size_px <= 0:
            raise ValueError("cell_size_px must be > 0")
        self.directory = Path(directory)
        self.cell_size_px = cell_size_px
        self._cache: dict[int, np.ndarray] = {}

    def floors(self) -> list[int]:
        if not self.directory.is_dir():
            return []
        floors: set[int] = set()
        for path in self.directory.glob("floor_*"):
            if path.suffix.lower() not in {".json", ".png"}:
                continue
            try:
                floors.add(int(path.stem.removeprefix("floor_")))
            except ValueError:
                continue
        return sorted(floors)

    def _load(self, floor: int) -> np.ndarray | None:
        json_path = self.directory / f"floor_{floor}.json"
        if json_path.exists():
            return load_grid_json(json_path)

        image_path = self.directory / f"floor_{floor}.png"
        if image_path.exists():
            image = cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)
            if image is None:
                raise ValueError(f"Unsupported or corrupted floor plan image: {image_path}")
            return image_to_walkability_grid(image, cell_size_px=self.cell_size_px)

        return None

    async def get_grid(self, floor: int) -> np.ndarray | None:
        floor = int(floor)
        if floor in self._cache:
            return self._cache[floor]

        grid = await asyncio.to_thread(self._load, floor)
        if grid is None:
            logger.warning("No grid asset for floor %d in %s", floor, self.directory)
            return None

        frozen = _freeze(grid)
        self._cache[floor] = frozen
        return frozen
