"""Integration tests for data-directory loading and multi-floor navigation endpoints."""

from __future__ import annotations

import json
from pathlib import Path

import cv2
import numpy as np
from fastapi.testclient import TestClient

from schoolnav.api import create_app
from schoolnav.grid import export_grid_json
from schoolnav.settings import Settings


def _write_data_dir(root: Path, payload: dict, grid: np.ndarray) -> None:
    """Lay out points.json plus JSON grids for floors 0..1 and a PNG plan for floor 2."""
    (root / "points.json").write_text(json.dumps({"success": True, "data": payload}), encoding="utf-8")
    grids = root / "grids"
    export_grid_json(grids / "floor_0.json", grid)
    export_grid_json(grids / "floor_1.json", grid)
    plan = np.full((grid.shape[0] * 5, grid.shape[1] * 5), 255, dtype=np.uint8)
    cv2.imwrite(str(grids / "floor_2.png"), plan)


def test_app_loads_data_dir_and_navigates(tmp_path: Path, building_payload, corridor_grid) -> None:
    """Configured assets are enough to route from floor 0 up to floor 2."""
    _write_data_dir(tmp_path, building_payload, corridor_grid)
    client = TestClient(create_app(Settings(data_dir=tmp_path)))

    health = client.get("/health").json()
    assert health["points"] == 7
    assert health["floors"] == [0, 1, 2]

    res = client.post("/navigate", json={"from_id": 10, "to_id": 30})
    assert res.status_code == 200
    body = res.json()
    assert body["order"] == [0, 1, 2]

    floor1 = body["maneuvers"][2]
    assert [m["instruction"] for m in floor1] == ["up"]
    assert floor1[0]["point"]["kind"] == "connector"

    floor2 = body["maneuvers"][3]
    walked = sum(m["distance"] for m in floor2 if m["instruction"] == "straight")
    assert abs(walked - 0.7) < 1e-6


def test_round_trip_routes_mirror_each_other(tmp_path: Path, building_payload, corridor_grid) -> None:
    _write_data_dir(tmp_path, building_payload, corridor_grid)
    client = TestClient(create_app(Settings(data_dir=tmp_path)))

    up = client.post("/navigate", json={"from_id": 11, "to_id": 30}).json()
    down = client.post("/navigate", json={"from_id": 30, "to_id": 11}).json()

    assert up["order"] == [0, 1, 2]
    assert down["order"] == [2, 1, 0]
    assert [m["instruction"] for m in down["maneuvers"][3] if m["instruction"] == "down"] == ["down"]


def test_uploaded_plan_overrides_asset_grid(tmp_path: Path, building_payload, corridor_grid) -> None:
    """A freshly uploaded plan takes precedence over the bundled floor asset."""
    _write_data_dir(tmp_path, building_payload, corridor_grid)
    client = TestClient(create_app(Settings(data_dir=tmp_path)))

    walled = np.full((20, 60), 255, dtype=np.uint8)
    walled[:, 30:35] = 0
    ok, buf = cv2.imencode(".png", walled)
    assert ok

    files = {"file": ("ground.png", buf.tobytes(), "image/png")}
    assert client.post("/floors/0/grid", files=files).status_code == 200

    grid = client.get("/floors/0/grid").json()["grid"]
    assert all(row[6] == 1 for row in grid)

    res = client.post("/navigate", json={"from_id": 10, "to_id": 11})
    assert res.status_code == 404
    assert res.json()["detail"] == "No route found"
