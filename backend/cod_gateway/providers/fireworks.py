from typing import Any, AsyncIterator, Dict, Optional

import httpx
import structlog

from cod_gateway.core.config import Settings
from cod_gateway.core.errors import NoResponseBodyError, UpstreamError
from cod_gateway.observability import UPSTREAM_CALLS
from cod_gateway.providers.base import UpstreamPayload

logger = structlog.get_logger()

# Shared client, created on first use and closed on app shutdown
_http_client: Optional[httpx.AsyncClient] = None


def get_http_client(settings: Settings) -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                settings.UPSTREAM_TIMEOUT_SECONDS,
                connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
            )
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class UpstreamStream:
    """Live handle on a 2xx streaming upstream response."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def encoding(self) -> str:
        return self._response.charset_encoding or "utf-8"

    def iter_bytes(self) -> AsyncIterator[bytes]:
        return self._response.aiter_bytes()

    async def aclose(self) -> None:
        await self._response.aclose()


class FireworksClient:
    """Single-endpoint client for the Fireworks chat-completions API."""

    def __init__(self, *, url: str, api_key: str, http_client: httpx.AsyncClient):
        self.url = url
        self._api_key = api_key
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None) -> "FireworksClient":
        return cls(
            url=settings.chat_completions_url,
            api_key=settings.FIREWORKS_API_KEY or "",
            http_client=http_client or get_http_client(settings),
        )

    def build_headers(self, streaming: bool) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if streaming:
            headers["Accept"] = "text/event-stream"
        return headers

    async def complete(self, payload: UpstreamPayload) -> Dict[str, Any]:
        """POST ``payload`` and return the parsed JSON body; raises ``UpstreamError`` on non-2xx."""
        resp = await self._http.post(
            self.url,
            json=payload.to_json(),
            headers=self.build_headers(streaming=False),
        )
        UPSTREAM_CALLS.labels("json", resp.status_code).inc()
        if not resp.is_success:
            logger.error("Fireworks API error", status=resp.status_code, body=resp.text)
            raise UpstreamError(resp.status_code, resp.text)
        return resp.json()

    async def open_stream(self, payload: UpstreamPayload) -> UpstreamStream:
        """POST ``payload`` and hand back the unread response for relaying.

        The caller owns the returned handle and must ``aclose()`` it.
        """
        request = self._http.build_request(
            "POST",
            self.url,
            json=payload.to_json(),
            headers=self.build_headers(streaming=True),
        )
        resp = await self._http.send(request, stream=True)
        UPSTREAM_CALLS.labels("stream", resp.status_code).inc()
        if not resp.is_success:
            try:
                await resp.aread()
            finally:
                await resp.aclose()
            logger.error("Fireworks API error", status=resp.status_code, body=resp.text)
            raise UpstreamError(resp.status_code, resp.text)
        if resp.status_code == 204 or resp.headers.get("content-length") == "0":
            await resp.aclose()
            raise NoResponseBodyError("Upstream accepted the stream request but sent no body")
        return UpstreamStream(resp)
