import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from cod_gateway.api.deps import get_upstream_client
from cod_gateway.core.config import Settings, get_settings
from cod_gateway.main import app
from cod_gateway.providers.fireworks import FireworksClient

UPSTREAM_URL = "https://upstream.test/inference/v1/chat/completions"


class ChunkStream(httpx.AsyncByteStream):
    """Upstream body that yields ``chunks`` and optionally blows up after ``fail_after`` of them."""

    def __init__(self, chunks: List[bytes], fail_after: Optional[int] = None):
        self.chunks = chunks
        self.fail_after = fail_after
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise httpx.ReadError("connection reset by peer")
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


class Upstream:
    """Records every upstream request and answers with ``handler``."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"choices": [{"message": {"content": "ok"}}]}
        )

    @property
    def payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def respond(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler

    def respond_with(self, *responses: httpx.Response) -> None:
        queue = list(responses)
        self.handler = lambda request: queue.pop(0)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self, api_key: str = "test-key") -> FireworksClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self._dispatch))
        return FireworksClient(url=UPSTREAM_URL, api_key=api_key, http_client=http)


def completion(content: Optional[str], usage: Optional[Dict[str, int]] = None, **extra) -> httpx.Response:
    body: Dict[str, Any] = {"choices": [{"message": {"role": "assistant", "content": content}}], **extra}
    if usage is not None:
        body["usage"] = usage
    return httpx.Response(200, json=body)


@pytest.fixture()
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, FIREWORKS_API_KEY="test-key")


@pytest.fixture()
def api_client(upstream: Upstream, settings: Settings):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_upstream_client] = lambda: upstream.client()
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
