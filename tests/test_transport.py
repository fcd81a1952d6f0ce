import json

import httpx
import pytest

from services.transport import HttpTransport


def _transport(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport("http://farm.local/api/", client=client)


@pytest.mark.asyncio
async def test_post_sends_json_body_and_decodes_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"_id": "abc", "milk": 5})

    result = await _transport(handler).send("POST", "/sessions", {"milk": 5})

    assert result.ok
    assert result.status_code == 201
    assert result.data == {"_id": "abc", "milk": 5}
    assert seen == {
        "method": "POST",
        "url": "http://farm.local/api/sessions",
        "body": {"milk": 5},
    }


@pytest.mark.asyncio
async def test_delete_sends_no_body():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return httpx.Response(204)

    result = await _transport(handler).send("DELETE", "/buyers/7", {"ignored": True})

    assert result.ok
    assert result.data is None
    assert bodies == [b""]


@pytest.mark.asyncio
async def test_error_status_is_a_failed_result():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    result = await _transport(handler).send("PUT", "/sales/1", {"paid": True})

    assert not result.ok
    assert result.status_code == 503
    assert "503" in result.error


@pytest.mark.asyncio
async def test_network_errors_do_not_raise():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def stall(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    refused = await _transport(refuse).send("GET", "/sessions")
    stalled = await _transport(stall).send("GET", "/sessions")

    assert not refused.ok and "refused" in refused.error
    assert not stalled.ok and stalled.error.startswith("timeout")


def test_absolute_endpoints_are_kept():
    transport = HttpTransport("http://farm.local/api")
    assert transport.url_for("https://other.example/x") == "https://other.example/x"
    assert transport.url_for("notifications") == "http://farm.local/api/notifications"
