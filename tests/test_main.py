import pytest

from conftest import FakeTransport
from main import create_offline_sync
from services.connectivity import ManualSignalSource
from storage.config import AppConfig


@pytest.mark.asyncio
async def test_bootstrap_wires_components_and_resumes_queue(tmp_path):
    store_path = tmp_path / "offline.db"
    source = ManualSignalSource(online=False)
    transport = FakeTransport(always_fail={"/sessions"})
    offline = await create_offline_sync(
        AppConfig(max_retries=2),
        store_path=store_path,
        source=source,
        transport=transport,
        log_path=None,
    )
    placeholder = await offline.api.post("/sessions", {"milk": 4})
    assert placeholder["milk"] == 4
    assert offline.status.current_status().pending_count == 1
    await offline.aclose()

    resumed_transport = FakeTransport()
    resumed_source = ManualSignalSource(online=False)
    resumed = await create_offline_sync(
        AppConfig(max_retries=2),
        store_path=store_path,
        source=resumed_source,
        transport=resumed_transport,
        log_path=None,
    )
    assert resumed.status.current_status().pending_count == 1

    resumed_source.go_online()
    await resumed.monitor.wait_idle()

    assert resumed_transport.calls == [("POST", "/sessions", {"milk": 4})]
    assert resumed.status.current_status().pending_count == 0
    await resumed.aclose()
