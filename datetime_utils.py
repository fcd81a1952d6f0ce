"""Helpers for UTC datetimes and epoch-millisecond timestamps."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_epoch_ms(dt: Optional[datetime]) -> int:
    """Return ``dt`` as integer milliseconds since the epoch (0 for ``None``)."""

    normalized = ensure_utc(dt)
    if normalized is None:
        return 0
    return int(normalized.timestamp() * 1000)


def from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def now_ms() -> int:
    return to_epoch_ms(utc_now())


__all__ = [
    "UTC",
    "ensure_utc",
    "from_epoch_ms",
    "now_ms",
    "to_epoch_ms",
    "utc_now",
]
