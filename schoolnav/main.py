"""Application entry point for the SchoolNav API.

Run locally:
    uvicorn schoolnav.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import uvicorn

from schoolnav.api import create_app
from schoolnav.settings import load_settings


def _load_local_env() -> None:
    """Load key=value pairs from local .env files if present.

    Priority (first existing file wins per key if env var was unset):
    1) schoolnav/.env
    2) .env
    """
    candidates = [Path("schoolnav/.env"), Path(".env")]

    for env_path in candidates:
        if not env_path.exists():
            continue

        for raw in env_path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            if not key or key in os.environ:
                continue
            os.environ[key] = value.strip().strip("'").strip('"')


_load_local_env()
settings = load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run("schoolnav.main:app", host=settings.host, port=settings.port, reload=settings.reload)
