# main.py
"""Bootstrap for the offline sync subsystem."""
from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from core.errors import OfflineError, StorageUnavailable
from core.settings import STORE_DB_PATH, SYNC_LOG_PATH
from datetime_utils import from_epoch_ms
from services.api_client import ApiClient
from services.connectivity import ConnectivityMonitor, ProbeSignalSource, SignalSource
from services.pending_ops_queue import PendingOpsQueue
from services.status import StatusBroadcaster
from services.sync_service import SyncService
from services.transport import ApiTransport, HttpTransport
from storage.config import AppConfig, load_config
from storage.record_store import RecordStore, open_record_store


@dataclass
class OfflineSync:
    """Everything the host application needs, built once at startup."""

    store: RecordStore
    queue: PendingOpsQueue
    monitor: ConnectivityMonitor
    status: StatusBroadcaster
    sync: SyncService
    transport: ApiTransport
    api: ApiClient

    async def aclose(self) -> None:
        self.sync.close()
        self.monitor.close()
        await self.transport.aclose()


async def create_offline_sync(
    config: Optional[AppConfig] = None,
    *,
    store_path: Optional[Path] = None,
    source: Optional[SignalSource] = None,
    transport: Optional[ApiTransport] = None,
    log_path: Optional[Path] = SYNC_LOG_PATH,
) -> OfflineSync:
    cfg = config or load_config()
    store = open_record_store(store_path or STORE_DB_PATH, quota_mb=cfg.storage_quota_mb)
    transport = transport or HttpTransport(cfg.api_base_url, timeout=cfg.request_timeout_sec)
    monitor = ConnectivityMonitor(source)
    queue = PendingOpsQueue(store, max_retries=cfg.max_retries)
    status = StatusBroadcaster()
    sync = SyncService(
        queue,
        transport,
        monitor,
        status,
        timeout=cfg.request_timeout_sec,
        log_path=log_path,
    )
    await sync.start()
    api = ApiClient(transport, monitor, sync)
    return OfflineSync(
        store=store,
        queue=queue,
        monitor=monitor,
        status=status,
        sync=sync,
        transport=transport,
        api=api,
    )


def _format_time(value: int) -> str:
    moment = from_epoch_ms(value)
    if moment is None:
        return "never"
    return moment.astimezone().strftime("%Y-%m-%d %H:%M:%S")


async def _run(command: str, store_path: Optional[Path]) -> int:
    cfg = load_config()
    source = ProbeSignalSource.from_url(
        cfg.api_base_url,
        interval=cfg.probe_interval_sec,
        timeout=cfg.probe_timeout_sec,
    )
    await source.check()
    try:
        offline = await create_offline_sync(cfg, store_path=store_path, source=source)
    except StorageUnavailable as exc:
        print(f"local store unavailable: {exc}")
        return 3
    try:
        status = offline.status.current_status()
        if command == "status":
            print(f"online: {'yes' if status.is_online else 'no'}")
            print(f"pending: {status.pending_count}")
            print(f"last sync: {_format_time(status.last_sync_time)}")
            return 0

        try:
            report = await offline.sync.force_sync()
        except OfflineError as exc:
            print(exc)
            return 2
        if report is None:
            print("sync already running")
            return 1
        print(
            f"synced {len(report.succeeded)}, retried {len(report.retried)}, "
            f"dropped {len(report.dropped)}, left {len(report.skipped)}"
        )
        return 0
    finally:
        await offline.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Offline sync queue maintenance")
    parser.add_argument("command", choices=("status", "flush"))
    parser.add_argument("--store", type=Path, default=None, help="path to the local store")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    return asyncio.run(_run(args.command, args.store))


if __name__ == "__main__":
    raise SystemExit(main())
