"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "MooTracker"


DATA_DIR = get_default_data_dir(APP_NAME)
STORAGE_DIR = DATA_DIR / "storage"
LOG_DIR = DATA_DIR / "logs"


STORE_DB_PATH = STORAGE_DIR / "offline.db"
CONFIG_PATH = DATA_DIR / "config.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class SyncSettings:
    api_base_url: str = "http://localhost:5000/api"
    max_retries: int = 3
    request_timeout_sec: float = 10.0
    probe_interval_sec: float = 30.0
    probe_timeout_sec: float = 5.0
    storage_quota_mb: int = 50


SYNC = SyncSettings()


# Collection name -> key field, mirrors the client's local schema.
STORE_COLLECTIONS: dict[str, str] = {
    "pending_operations": "id",
    "sessions": "id",
    "sales": "id",
    "health_records": "id",
    "metadata": "key",
}

PENDING_OPERATIONS = "pending_operations"
METADATA = "metadata"


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "LOG_DIR",
    "STORE_DB_PATH",
    "CONFIG_PATH",
    "SYNC_LOG_PATH",
    "SYNC",
    "SyncSettings",
    "STORE_COLLECTIONS",
    "PENDING_OPERATIONS",
    "METADATA",
    "get_default_data_dir",
]
