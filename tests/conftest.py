import os
from typing import Any, Callable, Union

import httpx
import pytest

# Deterministic test environment: no .env credentials, quiet logs
os.environ.setdefault("QUIET_STARTUP", "1")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("HTTP_RETRY_ATTEMPTS", "1")

from phantom.client import PhantomClient  # noqa: E402
from phantom.poller import PollPolicy  # noqa: E402
from phantom.transport import RemoteTransport  # noqa: E402

BASE_URL = "https://api.phantom.test"
API_KEY = "test-key-123"
AGENT_ID = "agent-42"

Responder = Union[Callable[[httpx.Request], httpx.Response], dict, list, str]


def reply(body: Any = None, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    """Build a responder returning ``body`` as JSON (or raw text for str)."""
    def _respond(request: httpx.Request) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)
    return _respond


def corrupt_gzip(request: httpx.Request) -> httpx.Response:
    """200 claiming gzip encoding over a body that is not gzip."""
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")


class FakeRemote:
    """Scripted stand-in for the remote agent API.

    Each route holds a list of responders consumed in order; the last one
    repeats. Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Callable[[httpx.Request], httpx.Response]]] = {}

    def on(self, method: str, path: str, *responders: Responder) -> "FakeRemote":
        self._routes[(method.upper(), path)] = [r if callable(r) else reply(r) for r in responders]
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self._routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": "Not found"})
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        return responder(request)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url=BASE_URL)

    def paths(self, method: str | None = None) -> list[str]:
        return [c.url.path for c in self.calls if method is None or c.method == method]


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def build_client(fake: FakeRemote, sleep: SleepRecorder | None = None, **kwargs: Any) -> PhantomClient:
    api_key = kwargs.pop("api_key", API_KEY)
    transport = RemoteTransport(BASE_URL, api_key, retry_attempts=1, http_client=fake.http_client())
    return PhantomClient(
        transport,
        api_key=api_key,
        agent_id=kwargs.pop("agent_id", AGENT_ID),
        policy=kwargs.pop("policy", PollPolicy(interval_seconds=5.0)),
        sleep=sleep or SleepRecorder(),
        **kwargs,
    )


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
