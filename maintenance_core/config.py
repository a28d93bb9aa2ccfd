# maintenance_core/config.py
import os
from dataclasses import dataclass, field
from typing import List, Optional

from maintenance_core.errors import InvalidArgument

DB_FILENAME = "maintenance_dashboard.db"


@dataclass(frozen=True)
class Settings:
    db_path: Optional[str] = None
    due_soon_days: int = 7
    storage_timeout: float = 5.0
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"


def _read_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise InvalidArgument(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise InvalidArgument(f"{name} must not be negative, got {raw!r}")
    return value


def get_settings() -> Settings:
    """Read settings from the environment (re-read on every call)."""
    origins = os.getenv("MAINTENANCE_CORS_ORIGINS", "http://localhost:5173")
    return Settings(
        db_path=os.getenv("MAINTENANCE_DB_PATH") or None,
        due_soon_days=_read_number("MAINTENANCE_DUE_SOON_DAYS", 7, int),
        storage_timeout=_read_number("MAINTENANCE_STORAGE_TIMEOUT", 5.0, float),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("MAINTENANCE_LOG_LEVEL", "INFO").upper(),
    )
