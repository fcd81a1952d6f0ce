from models.sync_status import SyncStatus
from services.status import StatusBroadcaster


def test_subscribe_delivers_current_status_immediately():
    broadcaster = StatusBroadcaster(SyncStatus(is_online=False, pending_count=2))
    received = []
    broadcaster.subscribe(received.append)
    assert received == [SyncStatus(is_online=False, pending_count=2)]


def test_publish_reaches_listeners_in_subscription_order():
    broadcaster = StatusBroadcaster()
    order = []
    broadcaster.subscribe(lambda status: order.append(("first", status.pending_count)))
    broadcaster.subscribe(lambda status: order.append(("second", status.pending_count)))
    order.clear()

    broadcaster.publish(pending_count=4)

    assert order == [("first", 4), ("second", 4)]
    assert broadcaster.current_status().pending_count == 4


def test_unsubscribe_stops_delivery():
    broadcaster = StatusBroadcaster()
    received = []
    unsubscribe = broadcaster.subscribe(received.append)
    unsubscribe()
    unsubscribe()
    broadcaster.publish(is_syncing=True)
    assert len(received) == 1


def test_failing_listener_does_not_block_others():
    broadcaster = StatusBroadcaster()
    received = []

    def broken(status):
        raise RuntimeError("render failed")

    broadcaster.subscribe(broken)
    broadcaster.subscribe(received.append)
    broadcaster.publish(is_online=False)

    assert received[-1].is_online is False


def test_snapshots_are_not_mutated_by_later_changes():
    broadcaster = StatusBroadcaster()
    before = broadcaster.current_status()
    broadcaster.publish(pending_count=9, last_sync_time=123)
    assert before.pending_count == 0
    assert broadcaster.current_status().last_sync_time == 123
