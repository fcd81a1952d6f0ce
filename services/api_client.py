"""API client that falls back to the offline queue when the network is down."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from core.errors import TransportFailure
from datetime_utils import now_ms
from services.connectivity import ConnectivityMonitor
from services.sync_service import SyncService
from services.transport import ApiTransport, TransportResult


logger = logging.getLogger(__name__)


def _placeholder(offline_id: str, data: Any) -> dict:
    # Only object payloads can be echoed back; lists and scalars are queued as-is.
    if isinstance(data, Mapping):
        return {"_id": offline_id, **data}
    return {"_id": offline_id}


class ApiClient:
    def __init__(
        self,
        transport: ApiTransport,
        monitor: ConnectivityMonitor,
        sync: Optional[SyncService] = None,
    ) -> None:
        self.transport = transport
        self.monitor = monitor
        self.sync = sync

    def _can_queue(self, allowed: bool) -> bool:
        return allowed and self.sync is not None and not self.monitor.is_online

    async def _request(self, method: str, endpoint: str, payload: Any = None) -> TransportResult:
        result = await self.transport.send(method, endpoint, payload)
        if not result.ok:
            logger.error("%s %s failed: %s", method, endpoint, result.error)
        return result

    @staticmethod
    def _raise(result: TransportResult) -> None:
        raise TransportFailure(result.error or "request failed", status_code=result.status_code)

    async def get(self, endpoint: str, *, use_offline_cache: bool = False) -> Any:
        result = await self._request("GET", endpoint)
        if result.ok:
            return result.data
        if self._can_queue(use_offline_cache):
            await self.sync.queue_request("GET", endpoint)
        self._raise(result)

    async def post(self, endpoint: str, data: Any = None, *, queue_if_offline: bool = True) -> Any:
        result = await self._request("POST", endpoint, data)
        if result.ok:
            return result.data
        if self._can_queue(queue_if_offline):
            logger.info("Queuing POST %s for offline sync", endpoint)
            await self.sync.queue_request("POST", endpoint, data)
            return _placeholder(f"offline-{now_ms()}", data)
        self._raise(result)

    async def put(self, endpoint: str, data: Any = None, *, queue_if_offline: bool = True) -> Any:
        return await self._update("PUT", endpoint, data, queue_if_offline)

    async def patch(self, endpoint: str, data: Any = None, *, queue_if_offline: bool = True) -> Any:
        return await self._update("PATCH", endpoint, data, queue_if_offline)

    async def delete(self, endpoint: str, *, queue_if_offline: bool = True) -> Any:
        result = await self._request("DELETE", endpoint)
        if result.ok:
            return result.data
        if self._can_queue(queue_if_offline):
            await self.sync.queue_request("DELETE", endpoint)
            return None
        self._raise(result)

    async def _update(self, method: str, endpoint: str, data: Any, queue_if_offline: bool) -> Any:
        result = await self._request(method, endpoint, data)
        if result.ok:
            return result.data
        if self._can_queue(queue_if_offline):
            await self.sync.queue_request(method, endpoint, data)
            return _placeholder("offline", data)
        self._raise(result)


__all__ = ["ApiClient"]
