"""Models exposed by the offline sync subsystem."""
from .queued_operation import QueuedOperation
from .stored_record import StoredRecord
from .sync_status import SyncReport, SyncStatus

__all__ = ["QueuedOperation", "StoredRecord", "SyncReport", "SyncStatus"]
