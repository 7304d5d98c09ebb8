from __future__ import annotations

import os
from dataclasses import dataclass, field


def _parse_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_origins(value: str | None) -> list[str]:
    return _parse_list(value, ["http://localhost:8000", "http://127.0.0.1:8000"])


@dataclass(frozen=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    db_path: str = os.getenv("SKYGRID_DB_PATH", "skygrid.db")
    island_distance: int = int(os.getenv("SKYGRID_ISLAND_DISTANCE", "128"))
    spawn_radius: int = int(os.getenv("SKYGRID_SPAWN_RADIUS", "64"))
    sky_worlds: list[str] = field(
        default_factory=lambda: _parse_list(os.getenv("SKYGRID_SKY_WORLDS"), ["skyworld"])
    )
    reservation_timeout_seconds: float = float(os.getenv("SKYGRID_RESERVATION_TIMEOUT", "300"))
    spiral_max_steps: int = int(os.getenv("SKYGRID_SPIRAL_MAX_STEPS", "100000"))
    frontier_namespace: str = os.getenv("SKYGRID_FRONTIER_NAMESPACE", "options.general")
    legacy_namespace: str | None = os.getenv("SKYGRID_LEGACY_NAMESPACE", "config") or None
    cors_origins: list[str] = field(
        default_factory=lambda: _parse_origins(os.getenv("SKYGRID_CORS_ORIGINS"))
    )
    api_key: str | None = os.getenv("SKYGRID_API_KEY")


settings = Settings()
