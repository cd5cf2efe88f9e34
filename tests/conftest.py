"""
Shared test configuration.

Adds src/ to sys.path so flat modules (api, llm_queue, llm_client, ...) and
the coaching/routes packages import the same way they do under uvicorn.

Fixtures build an app whose upstreams are httpx.MockTransport handlers, with
a zero-interval rate gate and a no-sleep retry policy, so nothing waits on
real time or touches the network.
"""

import os
import sys
from typing import Any, Callable, Dict, List

import httpx
import pytest

_project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_src_dir = os.path.join(_project_root, "src")

if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


async def no_sleep(_seconds: float) -> None:
    return None


def completion_payload(content: str) -> Dict[str, Any]:
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class Upstreams:
    """Mutable MockTransport handlers plus a record of every request seen."""

    def __init__(self) -> None:
        self.llm_requests: List[httpx.Request] = []
        self.tracker_requests: List[httpx.Request] = []
        self.llm: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json=completion_payload("Nice work today!"))
        )
        self.tracker: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(404, json={"errors": ["not mocked"]})
        )

    def _llm(self, request: httpx.Request) -> httpx.Response:
        self.llm_requests.append(request)
        return self.llm(request)

    def _tracker(self, request: httpx.Request) -> httpx.Response:
        self.tracker_requests.append(request)
        return self.tracker(request)

    def llm_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._llm))

    def tracker_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._tracker))


@pytest.fixture
def upstreams() -> Upstreams:
    return Upstreams()


@pytest.fixture
def make_settings(tmp_path):
    from settings import Settings

    def _make(**overrides: Any) -> "Settings":
        values = dict(
            fitbit_client_id="client-123",
            fitbit_client_secret="secret-456",
            fitbit_redirect_uri="http://testserver/auth/provider/callback",
            llm_api_key="test-key",
            llm_api_url="https://llm.test/inference",
            llm_model="test/model",
            min_time_between_calls_ms=0,
            response_log_path=str(tmp_path / "responses.json"),
            static_dir="",
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def make_client(upstreams, make_settings):
    """Return a factory producing a started TestClient (closed at teardown)."""
    from fastapi.testclient import TestClient

    from api import create_app
    from llm_client import RateLimitRetry

    clients: List[TestClient] = []

    def _make(retries: int = 1, **overrides: Any) -> TestClient:
        app = create_app(
            settings=make_settings(**overrides),
            llm_http=upstreams.llm_client(),
            tracker_http=upstreams.tracker_client(),
            github_http=httpx.AsyncClient(transport=httpx.MockTransport(
                lambda request: httpx.Response(401, json={"message": "Bad credentials"})
            )),
            retry=RateLimitRetry(retries=retries, base_delay=0, max_jitter=0, sleep=no_sleep),
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
