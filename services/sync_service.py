from __future__ import annotations
import asyncio
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, List, Optional

from core.errors import OfflineError, RetryExhausted
from core.settings import SYNC
from datetime_utils import now_ms
from models.queued_operation import QueuedOperation
from models.sync_status import SyncReport, SyncStatus
from services.connectivity import ConnectivityMonitor
from services.pending_ops_queue import PendingOpsQueue
from services.status import StatusBroadcaster
from services.transport import ApiTransport, TransportResult


LOGGER_NAME = "moo.sync"


def _ensure_logger(log_path: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if log_path is not None and not logger.handlers:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


class SyncService:
    """Drains the pending operations queue whenever the device is online.

    A drain pass replays a snapshot of the queue in enqueue order, one item at
    a time. Failed items have their retry count bumped and are retried on the
    next pass; items reaching ``max_retries`` are dropped and reported through
    ``on_retry_exhausted``. Only one pass runs at a time; triggers arriving
    while a pass is running are ignored.
    """

    def __init__(
        self,
        queue: PendingOpsQueue,
        transport: ApiTransport,
        monitor: ConnectivityMonitor,
        status: Optional[StatusBroadcaster] = None,
        *,
        timeout: Optional[float] = SYNC.request_timeout_sec,
        on_retry_exhausted: Optional[Callable[[RetryExhausted], Any]] = None,
        on_sync_start: Optional[Callable[[], Any]] = None,
        on_sync_complete: Optional[Callable[[SyncReport], Any]] = None,
        on_sync_error: Optional[Callable[[Exception], Any]] = None,
        log_path: Optional[Path] = None,
    ) -> None:
        self.queue = queue
        self.transport = transport
        self.monitor = monitor
        self.status = status or StatusBroadcaster(SyncStatus(is_online=monitor.is_online))
        self.timeout = timeout
        self.on_retry_exhausted = on_retry_exhausted
        self.on_sync_start = on_sync_start
        self.on_sync_complete = on_sync_complete
        self.on_sync_error = on_sync_error
        self.logger = _ensure_logger(log_path)
        self._syncing = False
        self._subscriptions: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> SyncStatus:
        store = self.queue.store
        last_sync = await store.get_last_sync_time()
        pending = await self.queue.count()
        status = self.status.publish(
            is_online=self.monitor.is_online,
            pending_count=pending,
            last_sync_time=last_sync,
        )
        if not self._subscriptions:
            self._subscriptions = [
                self.monitor.on_transition_to_online(self._handle_online),
                self.monitor.on_transition_to_offline(self._handle_offline),
                self.monitor.on_foreground(self._handle_foreground),
            ]
        self.logger.info("Offline sync started with %s pending operations", pending)
        return status

    def close(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []

    # ------------------------------------------------------------------
    # Connectivity hooks
    def _handle_online(self):
        # Published before the pass is scheduled; a later offline signal overrides it.
        self.status.publish(is_online=self.monitor.is_online)
        return self.sync()

    def _handle_offline(self) -> None:
        self.status.publish(is_online=self.monitor.is_online)

    async def _handle_foreground(self) -> None:
        await self.sync()

    # ------------------------------------------------------------------
    # Public API
    @property
    def is_syncing(self) -> bool:
        return self._syncing

    def current_status(self) -> SyncStatus:
        return self.status.current_status()

    def subscribe(self, listener: Callable[[SyncStatus], None]) -> Callable[[], None]:
        return self.status.subscribe(listener)

    async def queue_request(self, method: str, endpoint: str, payload: Any = None) -> str:
        op_id = await self.queue.enqueue(method, endpoint, payload)
        await self._refresh_pending()
        if self.monitor.is_online:
            await self.sync()
        return op_id

    async def sync(self) -> Optional[SyncReport]:
        """Run a drain pass if online and idle; return ``None`` when skipped."""

        if self._syncing:
            self.logger.debug("Sync already running, trigger ignored")
            return None
        if not self.monitor.is_online:
            return None
        return await self._drain()

    async def force_sync(self) -> Optional[SyncReport]:
        if not self.monitor.is_online:
            raise OfflineError()
        return await self.sync()

    async def pending_items(self) -> List[QueuedOperation]:
        return await self.queue.list_pending()

    async def pending_count(self) -> int:
        return await self.queue.count()

    async def clear_all_pending(self) -> None:
        await self.queue.clear()
        self.logger.warning("All pending operations cleared")
        await self._refresh_pending()

    async def remove_pending_item(self, op_id: str) -> None:
        await self.queue.remove(op_id)
        await self._refresh_pending()

    # ------------------------------------------------------------------
    # Drain pass
    async def _drain(self) -> SyncReport:
        self._syncing = True
        report = SyncReport(started_at=now_ms())
        self.status.publish(is_syncing=True)
        self._call(self.on_sync_start)
        try:
            operations = await self.queue.list_pending()
            if operations:
                self.logger.info("Syncing %s items", len(operations))
            else:
                self.logger.info("No items to sync")
            for index, operation in enumerate(operations):
                if not self.monitor.is_online:
                    report.aborted = True
                    report.skipped = [op.id for op in operations[index:]]
                    self.logger.info(
                        "Connectivity lost, leaving %s items queued", len(report.skipped)
                    )
                    break
                if operation.exhausted:
                    await self._drop(operation, report, "retry limit reached before replay")
                    continue
                await self._replay(operation, report)
            report.finished_at = now_ms()
            await self.queue.store.set_last_sync_time(report.finished_at)
        except Exception as exc:
            self._syncing = False
            self.logger.error("Sync error: %s", exc)
            self.status.publish(is_syncing=False)
            self._call(self.on_sync_error, exc)
            raise

        self._syncing = False
        self.status.publish(is_syncing=False, last_sync_time=report.finished_at)
        self.logger.info(
            "Sync complete: %s ok, %s retried, %s dropped",
            len(report.succeeded),
            len(report.retried),
            len(report.dropped),
        )
        self._call(self.on_sync_complete, report)
        return report

    async def _replay(self, operation: QueuedOperation, report: SyncReport) -> None:
        self.logger.debug(
            "Syncing %s %s (attempt %s)",
            operation.method,
            operation.endpoint,
            operation.retry_count + 1,
        )
        result = await self._send(operation)
        if result.ok:
            await self.queue.remove(operation.id)
            report.succeeded.append(operation.id)
            await self._refresh_pending()
            return

        self.logger.warning("Failed to sync %s: %s", operation.id, result.error)
        retries = await self.queue.bump_retry(operation.id)
        if retries == 0:
            # Removed by someone else while the pass was running.
            return
        if retries >= operation.max_retries:
            await self._drop(operation.with_retry(), report, result.error)
        else:
            report.retried.append(operation.id)

    async def _drop(
        self, operation: QueuedOperation, report: SyncReport, error: Optional[str]
    ) -> None:
        await self.queue.remove(operation.id)
        report.dropped.append(operation.id)
        self.logger.warning(
            "Max retries reached for %s %s (%s), removing from queue",
            operation.method,
            operation.endpoint,
            operation.id,
        )
        self._call(self.on_retry_exhausted, RetryExhausted(operation=operation, last_error=error))
        await self._refresh_pending()

    async def _send(self, operation: QueuedOperation) -> TransportResult:
        try:
            call = self.transport.send(operation.method, operation.endpoint, operation.payload)
            if self.timeout:
                return await asyncio.wait_for(call, self.timeout)
            return await call
        except asyncio.TimeoutError:
            return TransportResult.failure(f"timed out after {self.timeout}s")
        except Exception as exc:
            return TransportResult.failure(str(exc) or exc.__class__.__name__)

    async def _refresh_pending(self) -> None:
        count = await self.queue.count()
        self.status.publish(pending_count=count)

    def _call(self, hook: Optional[Callable[..., Any]], *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            self.logger.exception("Sync hook %r failed", hook)


__all__ = ["SyncService", "LOGGER_NAME"]
