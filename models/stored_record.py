"""SQLModel table backing the local record store."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


class StoredRecord(SQLModel, table=True):
    """One JSON document of a named collection."""

    collection: str = Field(primary_key=True)
    key: str = Field(primary_key=True)
    body: str
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = ["StoredRecord"]
