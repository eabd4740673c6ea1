"""Runtime configuration read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide settings for the API and its data assets."""

    data_dir: Path = Path("data")
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    @property
    def points_path(self) -> Path:
        return self.data_dir / "points.json"

    @property
    def grids_dir(self) -> Path:
        return self.data_dir / "grids"


def _parse_origins(raw: str) -> tuple[str, ...]:
    raw = raw.strip()
    if raw == "*" or not raw:
        return ("*",)
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def load_settings() -> Settings:
    """Build settings from `SCHOOLNAV_*` and `API_*` environment variables."""
    return Settings(
        data_dir=Path(os.getenv("SCHOOLNAV_DATA_DIR", "data")),
        cors_origins=_parse_origins(os.getenv("SCHOOLNAV_CORS_ORIGINS", "*")),
        log_level=os.getenv("SCHOOLNAV_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=os.getenv("API_RELOAD", "false").lower() == "true",
    )
