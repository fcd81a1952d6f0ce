"""Simple JSON-backed configuration store."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import CONFIG_PATH, SYNC


@dataclass
class AppConfig:
    """Lightweight configuration persisted to ``config.json``."""

    api_base_url: str = SYNC.api_base_url
    max_retries: int = SYNC.max_retries
    request_timeout_sec: float = SYNC.request_timeout_sec
    probe_interval_sec: float = SYNC.probe_interval_sec
    probe_timeout_sec: float = SYNC.probe_timeout_sec
    storage_quota_mb: int = SYNC.storage_quota_mb


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> AppConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    cfg = AppConfig()
    for item in fields(AppConfig):
        if item.name not in data:
            continue
        default = getattr(cfg, item.name)
        try:
            value = type(default)(data[item.name])
        except (TypeError, ValueError):
            continue
        setattr(cfg, item.name, value)
    if cfg.max_retries < 1:
        cfg.max_retries = SYNC.max_retries
    return cfg


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def update_config(path: Optional[Path] = None, **changes: Any) -> AppConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target)
    for key, value in changes.items():
        if hasattr(cfg, key):
            setattr(cfg, key, value)
    save_config(cfg, target)
    return cfg


__all__ = ["AppConfig", "load_config", "save_config", "update_config"]
