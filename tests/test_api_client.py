import pytest

from conftest import FakeTransport
from core.errors import TransportFailure
from services.api_client import ApiClient
from services.connectivity import ConnectivityMonitor, ManualSignalSource
from services.pending_ops_queue import PendingOpsQueue
from services.sync_service import SyncService


def _client(store, transport, *, online):
    monitor = ConnectivityMonitor(ManualSignalSource(online=online))
    sync = SyncService(PendingOpsQueue(store), transport, monitor)
    return ApiClient(transport, monitor, sync), sync


@pytest.mark.asyncio
async def test_success_returns_response_data(store, transport):
    api, sync = _client(store, transport, online=True)
    data = await api.post("/sessions", {"milk": 5})
    assert data == {"_id": "srv-1", "endpoint": "/sessions"}
    assert await sync.pending_count() == 0


@pytest.mark.asyncio
async def test_offline_mutations_are_queued_with_placeholders(store):
    transport = FakeTransport(always_fail={"/sessions", "/sales/1", "/buyers/2"})
    api, sync = _client(store, transport, online=False)

    created = await api.post("/sessions", {"milk": 5})
    updated = await api.patch("/sales/1", {"paid": True})
    deleted = await api.delete("/buyers/2")

    assert created["_id"].startswith("offline-") and created["milk"] == 5
    assert updated == {"_id": "offline", "paid": True}
    assert deleted is None
    pending = await sync.pending_items()
    assert [(op.method, op.endpoint) for op in pending] == [
        ("POST", "/sessions"),
        ("PATCH", "/sales/1"),
        ("DELETE", "/buyers/2"),
    ]
    assert sync.current_status().pending_count == 3


@pytest.mark.asyncio
async def test_online_failure_raises_transport_failure(store):
    transport = FakeTransport(always_fail={"/sessions"})
    api, sync = _client(store, transport, online=True)

    with pytest.raises(TransportFailure) as info:
        await api.put("/sessions", {"milk": 1})

    assert info.value.status_code == 500
    assert await sync.pending_count() == 0


@pytest.mark.asyncio
async def test_queueing_can_be_disabled(store):
    transport = FakeTransport(always_fail={"/sessions", "/stats"})
    api, sync = _client(store, transport, online=False)

    with pytest.raises(TransportFailure):
        await api.post("/sessions", {"milk": 1}, queue_if_offline=False)
    with pytest.raises(TransportFailure):
        await api.get("/stats")
    assert await sync.pending_count() == 0

    with pytest.raises(TransportFailure):
        await api.get("/stats", use_offline_cache=True)
    assert [op.method for op in await sync.pending_items()] == ["GET"]


@pytest.mark.asyncio
async def test_offline_list_payload_gets_bare_placeholder(store):
    transport = FakeTransport(always_fail={"/sessions/batch", "/sales/bulk"})
    api, sync = _client(store, transport, online=False)

    created = await api.post("/sessions/batch", [{"milk": 1}, {"milk": 2}])
    updated = await api.put("/sales/bulk", ["s1", "s2"])

    assert set(created) == {"_id"} and created["_id"].startswith("offline-")
    assert updated == {"_id": "offline"}
    pending = await sync.pending_items()
    assert [op.payload for op in pending] == [[{"milk": 1}, {"milk": 2}], ["s1", "s2"]]
