"""HTTP transport used to replay queued operations against the REST API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.settings import SYNC


logger = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass(frozen=True)
class TransportResult:
    ok: bool
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, status_code: int = 200, data: Any = None) -> "TransportResult":
        return cls(ok=True, status_code=status_code, data=data)

    @classmethod
    def failure(cls, error: str, status_code: Optional[int] = None) -> "TransportResult":
        return cls(ok=False, status_code=status_code, error=error)


class ApiTransport:
    """Interface of the network boundary; ``send`` never raises for request failures."""

    async def send(self, method: str, endpoint: str, payload: Any = None) -> TransportResult:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpTransport(ApiTransport):
    def __init__(
        self,
        base_url: str = SYNC.api_base_url,
        *,
        timeout: float = SYNC.request_timeout_sec,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout)
        self._client = client
        self._owns_client = client is None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def send(self, method: str, endpoint: str, payload: Any = None) -> TransportResult:
        client = self._ensure_client()
        verb = method.upper()
        kwargs = {}
        if verb in BODY_METHODS and payload is not None:
            kwargs["json"] = payload
        try:
            response = await client.request(verb, self.url_for(endpoint), **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out: %s", verb, endpoint, exc)
            return TransportResult.failure(f"timeout: {exc}")
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", verb, endpoint, exc)
            return TransportResult.failure(str(exc) or exc.__class__.__name__)

        if response.is_success:
            return TransportResult.success(response.status_code, _decode(response))
        reason = response.reason_phrase or ""
        return TransportResult.failure(
            f"HTTP {response.status_code}: {reason}".strip(), status_code=response.status_code
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


__all__ = ["ApiTransport", "HttpTransport", "TransportResult"]
