"""Queued mutation awaiting confirmation by the remote API."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

from datetime_utils import now_ms


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
DEFAULT_MAX_RETRIES = 3


def new_operation_id(enqueued_at: Optional[int] = None) -> str:
    stamp = enqueued_at if enqueued_at is not None else now_ms()
    return f"{stamp}-{secrets.token_hex(6)}"


def normalize_method(method: str) -> str:
    value = (method or "").strip().upper()
    if value not in HTTP_METHODS:
        raise ValueError(f"Unsupported method: {method}")
    return value


@dataclass(frozen=True)
class QueuedOperation:
    id: str
    method: str
    endpoint: str
    payload: Any = None
    enqueued_at: int = 0
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def create(
        cls,
        method: str,
        endpoint: str,
        payload: Any = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        enqueued_at: Optional[int] = None,
    ) -> "QueuedOperation":
        if max_retries < 1:
            raise ValueError("max_retries must be positive")
        stamp = enqueued_at if enqueued_at is not None else now_ms()
        return cls(
            id=new_operation_id(stamp),
            method=normalize_method(method),
            endpoint=endpoint,
            payload=payload,
            enqueued_at=stamp,
            retry_count=0,
            max_retries=max_retries,
        )

    @property
    def exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def with_retry(self) -> "QueuedOperation":
        return replace(self, retry_count=self.retry_count + 1)

    def to_record(self) -> Dict[str, Any]:
        """Persisted layout of the ``pending_operations`` collection."""

        record: Dict[str, Any] = {
            "id": self.id,
            "method": self.method,
            "endpoint": self.endpoint,
            "enqueuedAt": self.enqueued_at,
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
        }
        if self.payload is not None:
            record["payload"] = self.payload
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "QueuedOperation":
        return cls(
            id=str(record["id"]),
            method=normalize_method(str(record["method"])),
            endpoint=str(record["endpoint"]),
            payload=record.get("payload"),
            enqueued_at=int(record.get("enqueuedAt") or 0),
            retry_count=int(record.get("retryCount") or 0),
            max_retries=int(record.get("maxRetries") or DEFAULT_MAX_RETRIES),
        )


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "HTTP_METHODS",
    "QueuedOperation",
    "new_operation_id",
    "normalize_method",
]
