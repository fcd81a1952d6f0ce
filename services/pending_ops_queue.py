from __future__ import annotations

import logging
from typing import Any, List, Optional

from core.errors import StorageUnavailable
from core.settings import PENDING_OPERATIONS, SYNC
from datetime_utils import now_ms
from models.queued_operation import QueuedOperation
from storage.record_store import RecordStore


logger = logging.getLogger(__name__)


class PendingOpsQueue:
    """Typed view over the ``pending_operations`` collection."""

    def __init__(self, store: Optional[RecordStore], *, max_retries: int = SYNC.max_retries) -> None:
        self._store = store
        self.max_retries = max_retries
        self._last_stamp = 0

    @property
    def store(self) -> RecordStore:
        if self._store is None:
            raise StorageUnavailable("Offline queue has no usable record store")
        return self._store

    def _next_stamp(self) -> int:
        # Strictly increasing so replay order matches enqueue order.
        stamp = max(now_ms(), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    async def enqueue(self, method: str, endpoint: str, payload: Any = None) -> str:
        store = self.store
        operation = QueuedOperation.create(
            method,
            endpoint,
            payload,
            max_retries=self.max_retries,
            enqueued_at=self._next_stamp(),
        )
        await store.put(PENDING_OPERATIONS, operation.to_record())
        logger.info("Queued %s %s as %s", operation.method, operation.endpoint, operation.id)
        return operation.id

    async def get(self, op_id: str) -> Optional[QueuedOperation]:
        record = await self.store.get_by_id(PENDING_OPERATIONS, op_id)
        if record is None:
            return None
        return QueuedOperation.from_record(record)

    async def list_pending(self) -> List[QueuedOperation]:
        result: List[QueuedOperation] = []
        for record in await self.store.get_all(PENDING_OPERATIONS):
            try:
                result.append(QueuedOperation.from_record(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed queued operation %r: %s", record.get("id"), exc)
        result.sort(key=lambda op: (op.enqueued_at, op.id))
        return result

    async def remove(self, op_id: str) -> None:
        await self.store.delete(PENDING_OPERATIONS, op_id)

    async def bump_retry(self, op_id: str) -> int:
        operation = await self.get(op_id)
        if operation is None:
            return 0
        updated = operation.with_retry()
        await self.store.put(PENDING_OPERATIONS, updated.to_record())
        return updated.retry_count

    async def count(self) -> int:
        return await self.store.count(PENDING_OPERATIONS)

    async def clear(self) -> None:
        await self.store.clear(PENDING_OPERATIONS)


__all__ = ["PendingOpsQueue"]
