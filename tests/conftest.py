"""Pytest fixtures and shared test configuration.

Fixtures:
    - clock: Manually advanced monotonic clock
    - sink: Metrics sink recording every report
    - client_config: Client configuration pointing at a fake server
    - make_session: Factory for sessions backed by an httpx.MockTransport
    - async_client: HTTPX client for API testing
"""

from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from chatstream.api.app import create_app
from chatstream.client.config import ClientConfig
from chatstream.client.reporting import MetricsReporter
from chatstream.client.session import StreamingChatSession
from chatstream.models.schemas import ErrorLogPayload, MetricsLogPayload


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """Metrics sink that keeps every payload it receives."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.metrics: list[MetricsLogPayload] = []
        self.errors: list[ErrorLogPayload] = []

    async def log_metrics(self, payload: MetricsLogPayload) -> None:
        if self.fail:
            raise ConnectionError("metrics endpoint unreachable")
        self.metrics.append(payload)

    async def log_error(self, payload: ErrorLogPayload) -> None:
        if self.fail:
            raise ConnectionError("error endpoint unreachable")
        self.errors.append(payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client_config() -> ClientConfig:
    return ClientConfig(api_base_url="http://chat.test/", request_timeout=5.0)


@pytest.fixture
async def make_session(
    clock: FakeClock, sink: RecordingSink, client_config: ClientConfig
) -> AsyncGenerator[Callable[..., StreamingChatSession]]:
    """Build sessions whose chat server is the given MockTransport handler.

    Yields:
        Factory taking a request handler and optional session kwargs.
    """
    clients: list[httpx.AsyncClient] = []

    def factory(handler, **kwargs) -> StreamingChatSession:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        kwargs.setdefault("reporter", MetricsReporter(sink))
        return StreamingChatSession(config=client_config, client=client, clock=clock, **kwargs)

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
