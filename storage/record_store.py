"""Durable collection store for offline records."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy.engine import Engine
from sqlmodel import select

from core.errors import StorageUnavailable
from core.settings import METADATA, STORE_COLLECTIONS, SYNC
from datetime_utils import utc_now
from models.stored_record import StoredRecord
from storage.db import (
    SessionFactory,
    create_store_engine,
    database_file,
    init_db,
    session_factory,
)


logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "lastSync"


@dataclass(frozen=True)
class StorageEstimate:
    usage: int
    quota: int
    percentage: float


def _serialise(record: Mapping[str, Any]) -> str:
    return json.dumps(dict(record), ensure_ascii=False, sort_keys=True)


def _deserialise(body: Optional[str]) -> Optional[Dict[str, Any]]:
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class RecordStore:
    """Async key/value store organised into named collections.

    Every collection is keyed by a declared field (see ``STORE_COLLECTIONS``).
    Writes to the same collection are serialised through a per-collection lock.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        collections: Optional[Mapping[str, str]] = None,
        db_file: Optional[Path] = None,
        quota_bytes: int = SYNC.storage_quota_mb * 1024 * 1024,
    ) -> None:
        self._session_factory = session_factory
        self._collections = dict(collections or STORE_COLLECTIONS)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._db_file = db_file
        self._quota_bytes = quota_bytes

    @property
    def collections(self) -> Dict[str, str]:
        return dict(self._collections)

    def key_field(self, collection: str) -> str:
        try:
            return self._collections[collection]
        except KeyError:
            raise KeyError(f"Unknown collection: {collection}") from None

    def _lock(self, collection: str) -> asyncio.Lock:
        lock = self._locks.get(collection)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[collection] = lock
        return lock

    # ----- reads -----
    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self.key_field(collection)
        with self._session_factory() as session:
            rows = session.exec(
                select(StoredRecord).where(StoredRecord.collection == collection)
            ).all()
        result: List[Dict[str, Any]] = []
        for row in rows:
            data = _deserialise(row.body)
            if data is None:
                logger.warning("Skipping unreadable record %s/%s", collection, row.key)
                continue
            result.append(data)
        return result

    async def get_by_id(self, collection: str, key: Any) -> Optional[Dict[str, Any]]:
        self.key_field(collection)
        with self._session_factory() as session:
            row = session.get(StoredRecord, (collection, str(key)))
            return _deserialise(row.body if row else None)

    # ----- writes -----
    async def put(self, collection: str, record: Mapping[str, Any]) -> str:
        field = self.key_field(collection)
        if record.get(field) in (None, ""):
            raise ValueError(f"Record for {collection} is missing key field '{field}'")
        key = str(record[field])
        body = _serialise(record)
        async with self._lock(collection):
            with self._session_factory() as session:
                row = session.get(StoredRecord, (collection, key))
                if row is None:
                    row = StoredRecord(collection=collection, key=key, body=body)
                else:
                    row.body = body
                    row.updated_at = utc_now()
                session.add(row)
                session.commit()
        return key

    async def delete(self, collection: str, key: Any) -> None:
        self.key_field(collection)
        async with self._lock(collection):
            with self._session_factory() as session:
                row = session.get(StoredRecord, (collection, str(key)))
                if row:
                    session.delete(row)
                    session.commit()

    async def clear(self, collection: str) -> None:
        self.key_field(collection)
        async with self._lock(collection):
            with self._session_factory() as session:
                rows = session.exec(
                    select(StoredRecord).where(StoredRecord.collection == collection)
                ).all()
                for row in rows:
                    session.delete(row)
                session.commit()

    async def count(self, collection: str) -> int:
        return len(await self.get_all(collection))

    # ----- metadata -----
    async def get_last_sync_time(self) -> int:
        meta = await self.get_by_id(METADATA, LAST_SYNC_KEY)
        if not meta:
            return 0
        try:
            return int(meta.get("value") or 0)
        except (TypeError, ValueError):
            return 0

    async def set_last_sync_time(self, timestamp: int) -> None:
        await self.put(METADATA, {"key": LAST_SYNC_KEY, "value": int(timestamp)})

    # ----- bulk helpers -----
    async def export_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return {name: await self.get_all(name) for name in self._collections}

    async def import_data(self, data: Mapping[str, Any]) -> int:
        imported = 0
        for name, items in data.items():
            if name not in self._collections:
                logger.info("Ignoring unknown collection %s during import", name)
                continue
            if not isinstance(items, list):
                continue
            for item in items:
                if isinstance(item, Mapping):
                    await self.put(name, item)
                    imported += 1
        return imported

    async def reset(self) -> None:
        for name in self._collections:
            await self.clear(name)

    def storage_estimate(self) -> StorageEstimate:
        usage = 0
        if self._db_file is not None:
            try:
                usage = self._db_file.stat().st_size
            except OSError:
                usage = 0
        quota = self._quota_bytes
        percentage = (usage / quota * 100) if quota else 0.0
        return StorageEstimate(usage=usage, quota=quota, percentage=percentage)


def open_record_store(
    path: Union[str, Path, None] = None,
    *,
    engine: Optional[Engine] = None,
    quota_mb: int = SYNC.storage_quota_mb,
) -> RecordStore:
    """Open (creating when needed) the local store, or raise ``StorageUnavailable``."""

    actual_engine = engine or create_store_engine(path)
    init_db(actual_engine)
    store = RecordStore(
        session_factory(actual_engine),
        db_file=database_file(actual_engine),
        quota_bytes=quota_mb * 1024 * 1024,
    )
    estimate = store.storage_estimate()
    if estimate.quota and estimate.usage > estimate.quota:
        raise StorageUnavailable(
            f"Local store uses {estimate.usage} bytes, above quota of {estimate.quota}"
        )
    logger.debug("Record store ready (%s bytes used)", estimate.usage)
    return store


__all__ = [
    "LAST_SYNC_KEY",
    "RecordStore",
    "StorageEstimate",
    "open_record_store",
]
