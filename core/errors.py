"""Error taxonomy of the offline sync subsystem."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from models.queued_operation import QueuedOperation


class OfflineSyncError(Exception):
    """Base class for offline sync errors."""


class StorageUnavailable(OfflineSyncError):
    """The local record store cannot be opened or used."""


class OfflineError(OfflineSyncError):
    """An immediate sync was requested while offline."""

    def __init__(self, message: str = "Cannot sync while offline") -> None:
        super().__init__(message)


class TransportFailure(OfflineSyncError):
    """A request to the remote API did not succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryExhausted:
    """Reported (not raised) when a queued operation is dropped."""

    operation: "QueuedOperation"
    last_error: Optional[str] = None


__all__ = [
    "OfflineError",
    "OfflineSyncError",
    "RetryExhausted",
    "StorageUnavailable",
    "TransportFailure",
]
