"""FastAPI routes for point inventory, floor grids and turn-by-turn navigation.

Endpoints:
- Inventory (`/points`)
- Floor grids (`/floors/{floor}/grid`, `/floors/{floor}/find-path`)
- Navigation (`/navigate`)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any

import cv2
import numpy as np
from fastapi import Body, FastAPI, File, HTTPException, Path, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from schoolnav.grid import GRID_SCALE, image_to_walkability_grid
from schoolnav.navigation import Navigator
from schoolnav.pathfinding import find_path
from schoolnav.points import MAX_FLOOR, MIN_FLOOR, PointInventory
from schoolnav.repository import (
    AssetGridProvider,
    ChainedGridProvider,
    StaticGridProvider,
    inventory_to_payload,
    load_points,
    parse_points_payload,
)
from schoolnav.settings import Settings, load_settings
from schoolnav.utils import json_grid, to_serializable_path

logger = logging.getLogger(__name__)


@dataclass
class ServiceState:
    """Loaded point inventory and grid sources shared by all requests."""

    inventory: PointInventory | None = None
    uploaded_grids: StaticGridProvider = field(default_factory=StaticGridProvider)
    asset_grids: AssetGridProvider | None = None

    def grid_provider(self) -> ChainedGridProvider:
        providers: list[Any] = [self.uploaded_grids]
        if self.asset_grids is not None:
            providers.append(self.asset_grids)
        return ChainedGridProvider(*providers)

    def floors(self) -> list[int]:
        floors = set(self.uploaded_grids.floors())
        if self.asset_grids is not None:
            floors.update(self.asset_grids.floors())
        return sorted(floors)


STATE = ServiceState()

Floor = Annotated[int, Path(ge=MIN_FLOOR, le=MAX_FLOOR, description="Floor index, basement is -1")]


class GridPoint(BaseModel):
    """Grid coordinate with row/column indexing."""

    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)


class PathRequest(BaseModel):
    """Request payload for single-floor cell routing."""

    start: GridPoint
    goal: GridPoint


class PathResponse(BaseModel):
    """Cell path plus its building coordinates."""

    path: list[dict[str, int]]
    world_path: list[dict[str, float]]


class NavigateRequest(BaseModel):
    """Route between two inventory points by id."""

    from_id: int
    to_id: int


class ManeuverPoint(BaseModel):
    id: int
    kind: str
    label: str
    x: float
    y: float
    floor: int


class ManeuverOut(BaseModel):
    instruction: str
    distance: float
    point: ManeuverPoint


class NavigateResponse(BaseModel):
    """Per-floor maneuvers (index `floor + 1`) and floor visit order."""

    maneuvers: list[list[ManeuverOut]]
    order: list[int]


def _decode_upload_image(raw_bytes: bytes) -> np.ndarray:
    """Decode uploaded bytes into a grayscale OpenCV image."""
    if not raw_bytes:
        raise ValueError("Uploaded file is empty")

    np_buf = np.frombuffer(raw_bytes, dtype=np.uint8)
    image = cv2.imdecode(np_buf, cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise ValueError("Unsupported or corrupted image format")
    return image


def _inventory_or_400() -> PointInventory:
    """Get loaded point inventory or raise 400."""
    if STATE.inventory is None:
        raise HTTPException(status_code=400, detail="No point inventory loaded yet")
    return STATE.inventory


def _init_state(settings: Settings) -> None:
    """Load data assets configured in settings unless state is already populated."""
    if STATE.asset_grids is None:
        STATE.asset_grids = AssetGridProvider(settings.grids_dir, cell_size_px=GRID_SCALE)

    if STATE.inventory is None and settings.points_path.exists():
        try:
            STATE.inventory = load_points(settings.points_path)
        except (OSError, ValueError) as exc:
            logger.error("Failed to load points from %s: %s", settings.points_path, exc)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or load_settings()
    _init_state(settings)

    app = FastAPI(title="SchoolNav API", version="1.0.0")

    cors_origins = list(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=cors_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, Any]:
        """Health endpoint with loaded data summary."""
        return {
            "status": "ok",
            "version": app.version,
            "points": len(STATE.inventory) if STATE.inventory is not None else 0,
            "floors": STATE.floors(),
        }

    @app.get("/points")
    async def get_points(floor: int | None = Query(default=None, ge=MIN_FLOOR, le=MAX_FLOOR)) -> dict[str, Any]:
        """Return rooms, exits and connections, optionally for one floor."""
        inventory = _inventory_or_400()
        return inventory_to_payload(inventory, floor=floor)

    @app.put("/points")
    async def put_points(payload: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Replace the point inventory."""
        try:
            inventory = parse_points_payload(payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid points payload: {exc}") from exc

        STATE.inventory = inventory
        return {"message": "Points loaded successfully", "count": len(inventory), "floors": inventory.floors()}

    @app.get("/floors/{floor}/grid")
    async def get_floor_grid(floor: Floor) -> dict[str, Any]:
        """Return the walkability grid of one floor."""
        try:
            grid = await STATE.grid_provider().get_grid(floor)
        except (OSError, ValueError) as exc:
            raise HTTPException(status_code=500, detail=f"Grid for floor {floor} failed to load: {exc}") from exc
        if grid is None:
            raise HTTPException(status_code=404, detail=f"No grid available for floor {floor}")

        rows, cols = grid.shape
        return {"floor": floor, "grid": json_grid(grid), "rows": rows, "cols": cols, "cell_size": GRID_SCALE}

    @app.post("/floors/{floor}/grid")
    async def upload_floor_grid(floor: Floor, file: UploadFile = File(...)) -> dict[str, Any]:
        """Rasterize an uploaded floor-plan image into the floor's grid."""
        if not file.filename:
            raise HTTPException(status_code=400, detail="No file name provided")

        try:
            image = _decode_upload_image(await file.read())
            grid = image_to_walkability_grid(image, cell_size_px=GRID_SCALE)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Floor plan processing failed: {exc}") from exc

        STATE.uploaded_grids.set_grid(floor, grid)
        rows, cols = grid.shape
        return {
            "message": "Floor plan processed successfully",
            "floor": floor,
            "grid_shape": {"rows": rows, "cols": cols},
            "walkable_cells": int(np.count_nonzero(grid == 0)),
        }

    @app.post("/floors/{floor}/find-path", response_model=PathResponse)
    async def find_floor_path(payload: PathRequest, floor: Floor) -> PathResponse:
        """Compute a single-floor cell path, snapping blocked endpoints."""
        try:
            grid = await STATE.grid_provider().get_grid(floor)
        except (OSError, ValueError) as exc:
            raise HTTPException(status_code=500, detail=f"Grid for floor {floor} failed to load: {exc}") from exc
        if grid is None:
            raise HTTPException(status_code=404, detail=f"No grid available for floor {floor}")

        try:
            path = find_path(
                grid,
                (payload.start.row, payload.start.col),
                (payload.goal.row, payload.goal.col),
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid path query: {exc}") from exc

        if path is None:
            raise HTTPException(status_code=404, detail="No navigable path found")

        world_path = [{"x": float(c * GRID_SCALE), "y": float(r * GRID_SCALE)} for r, c in path]
        return PathResponse(path=to_serializable_path(path), world_path=world_path)

    @app.post("/navigate", response_model=NavigateResponse)
    async def navigate(payload: NavigateRequest) -> dict[str, Any]:
        """Turn-by-turn directions between two inventory points."""
        inventory = _inventory_or_400()

        start = inventory.get(payload.from_id)
        if start is None:
            raise HTTPException(status_code=404, detail=f"Point {payload.from_id} was not found")
        end = inventory.get(payload.to_id)
        if end is None:
            raise HTTPException(status_code=404, detail=f"Point {payload.to_id} was not found")

        navigator = Navigator(inventory, STATE.grid_provider())
        result = await navigator.navigate(start, end)
        if result is None:
            raise HTTPException(status_code=404, detail="No route found")

        return result.to_dict()

    return app
