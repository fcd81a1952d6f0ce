import pytest

from core.errors import StorageUnavailable
from models.queued_operation import QueuedOperation
from services.pending_ops_queue import PendingOpsQueue


@pytest.mark.asyncio
async def test_enqueue_persists_documented_layout(store):
    queue = PendingOpsQueue(store)
    op_id = await queue.enqueue("post", "/sessions", {"milk": 5})

    record = await store.get_by_id("pending_operations", op_id)
    assert record["id"] == op_id
    assert record["method"] == "POST"
    assert record["endpoint"] == "/sessions"
    assert record["payload"] == {"milk": 5}
    assert record["retryCount"] == 0
    assert record["maxRetries"] == 3
    assert isinstance(record["enqueuedAt"], int)


@pytest.mark.asyncio
async def test_payload_is_absent_when_not_given(store):
    queue = PendingOpsQueue(store)
    op_id = await queue.enqueue("DELETE", "/buyers/7")
    record = await store.get_by_id("pending_operations", op_id)
    assert "payload" not in record


@pytest.mark.asyncio
async def test_ids_unique_and_listing_follows_enqueue_order(store):
    queue = PendingOpsQueue(store)
    ids = [await queue.enqueue("POST", f"/sales/{n}", {"n": n}) for n in range(5)]

    assert len(set(ids)) == 5
    pending = await queue.list_pending()
    assert [op.id for op in pending] == ids
    assert [op.enqueued_at for op in pending] == sorted(op.enqueued_at for op in pending)


@pytest.mark.asyncio
async def test_list_pending_sorts_by_enqueued_at(store):
    late = QueuedOperation.create("PUT", "/late", enqueued_at=3000)
    early = QueuedOperation.create("PUT", "/early", enqueued_at=1000)
    await store.put("pending_operations", late.to_record())
    await store.put("pending_operations", early.to_record())

    pending = await PendingOpsQueue(store).list_pending()
    assert [op.endpoint for op in pending] == ["/early", "/late"]


@pytest.mark.asyncio
async def test_bump_retry_and_remove(store):
    queue = PendingOpsQueue(store, max_retries=2)
    op_id = await queue.enqueue("PATCH", "/notifications/1", {"read": True})

    assert await queue.bump_retry(op_id) == 1
    assert await queue.bump_retry(op_id) == 2
    operation = await queue.get(op_id)
    assert operation.retry_count == 2
    assert operation.max_retries == 2
    assert operation.exhausted

    await queue.remove(op_id)
    assert await queue.count() == 0
    assert await queue.bump_retry(op_id) == 0


@pytest.mark.asyncio
async def test_malformed_records_are_skipped(store):
    queue = PendingOpsQueue(store)
    await queue.enqueue("POST", "/sessions", {"milk": 1})
    await store.put("pending_operations", {"id": "broken", "method": "FETCH", "endpoint": "/x"})

    pending = await queue.list_pending()
    assert [op.endpoint for op in pending] == ["/sessions"]


@pytest.mark.asyncio
async def test_invalid_method_rejected(store):
    with pytest.raises(ValueError):
        await PendingOpsQueue(store).enqueue("FETCH", "/sessions")


@pytest.mark.asyncio
async def test_queue_without_store_refuses_to_enqueue():
    queue = PendingOpsQueue(None)
    with pytest.raises(StorageUnavailable):
        await queue.enqueue("POST", "/sessions", {"milk": 5})
