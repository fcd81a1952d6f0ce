import asyncio
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.transport import ApiTransport, TransportResult
from storage.record_store import open_record_store


class FakeTransport(ApiTransport):
    """Records every call; fails endpoints listed in ``always_fail`` or ``fail_times``."""

    def __init__(self, always_fail=(), fail_times=None):
        self.calls: list[tuple[str, str, object]] = []
        self.always_fail = set(always_fail)
        self.fail_times = dict(fail_times or {})
        self.on_call = None

    async def send(self, method, endpoint, payload=None):
        self.calls.append((method, endpoint, payload))
        await asyncio.sleep(0)
        if self.on_call is not None:
            self.on_call(method, endpoint)
        if endpoint in self.always_fail:
            return TransportResult.failure("HTTP 500: Internal Server Error", status_code=500)
        remaining = self.fail_times.get(endpoint, 0)
        if remaining:
            self.fail_times[endpoint] = remaining - 1
            return TransportResult.failure("connection refused")
        return TransportResult.success(201, {"_id": "srv-1", "endpoint": endpoint})

    def calls_for(self, endpoint):
        return [call for call in self.calls if call[1] == endpoint]


@pytest.fixture()
def store():
    return open_record_store(":memory:")


@pytest.fixture()
def transport():
    return FakeTransport()
