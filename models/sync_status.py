"""In-memory read models describing synchronization state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class SyncStatus:
    is_online: bool = True
    is_syncing: bool = False
    pending_count: int = 0
    last_sync_time: int = 0


@dataclass
class SyncReport:
    """Outcome of a single drain pass."""

    started_at: int = 0
    finished_at: int = 0
    succeeded: List[str] = field(default_factory=list)
    retried: List[str] = field(default_factory=list)
    dropped: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.retried) + len(self.dropped)


__all__ = ["SyncReport", "SyncStatus"]
