"""HTTP transport to the remote agent API.

Keeps every wire detail in one place: base URL, the shared-secret header,
timeouts and retries of transport-level failures. HTTP status and body are
returned as-is; deciding whether a response is *usable* belongs to the
dialect that issued it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

from .utils import retryable, try_json

API_KEY_HEADER = "X-Phantombuster-Key-1"


@dataclass(slots=True)
class RemoteResponse:
    """One decoded remote response. ``body`` is None when the text is not JSON."""

    status_code: int
    text: str
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def from_httpx(cls, resp: httpx.Response) -> "RemoteResponse":
        return cls(status_code=resp.status_code, text=resp.text, body=try_json(resp.text))


class RemoteTransport:
    """Thin async wrapper around ``httpx.AsyncClient``.

    Transport failures are retried; ``request`` raises ``httpx.RequestError``
    (a transport error after the last attempt, or an undecodable body) and
    returns a ``RemoteResponse`` for everything else.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        timeout: float = 20.0,
        retry_attempts: int = 3,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self._api_key = api_key
        self._owns_client = http_client is None
        # An injected client (tests, shared pools) must carry its own base_url
        self._client = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)
        self._logger = logger or structlog.get_logger().bind(component="transport")
        self._send_with_retry = retryable(httpx.TransportError, attempts=retry_attempts)(self._send)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers[API_KEY_HEADER] = self._api_key
        return headers

    async def _send(self, method: str, path: str, params: Optional[dict[str, Any]], json: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, params=params, json=json, headers=self._headers())
        except httpx.RequestError as exc:
            self._logger.warning("remote_transport_error", method=method, path=path, error=str(exc))
            raise

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
    ) -> RemoteResponse:
        resp = await self._send_with_retry(method, path, params, json)
        self._logger.debug("remote_call", method=method, path=path, status_code=resp.status_code)
        return RemoteResponse.from_httpx(resp)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["API_KEY_HEADER", "RemoteResponse", "RemoteTransport"]
