"""Shared pytest fixtures for foundrykit tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
collectors in the global prometheus_client registry).

The outbound storage client is injected on ``app.state.http_client`` per
test instead of running the lifespan (which would open a real client).
"""

from datetime import datetime, timezone

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from foundrykit.config import FoundryKitConfig, ServerConfig
from foundrykit.server import create_app
from foundrykit.sigv4 import Credentials

ALLOWED_ORIGIN = "http://localhost:5173"

FROZEN_NOW = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


class StorageRecorder:
    """A scripted S3 endpoint for httpx.MockTransport.

    Each call pops the next queued response (default 200 empty) and the
    request is kept in ``requests`` for inspection.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []

    def queue(self, status: int = 200, text: str = "") -> None:
        self.responses.append(httpx.Response(status, text=text))

    def fail(self, exc: Exception) -> None:
        self.responses.append(exc)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200)
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("DO00EXAMPLEKEYID1234", "example-secret-key-value")


@pytest.fixture
def clock():
    """A signing clock frozen at 2024-01-01T00:00:00Z."""
    return lambda: FROZEN_NOW


@pytest.fixture
def recorder() -> StorageRecorder:
    return StorageRecorder()


@pytest.fixture
async def storage_client(recorder):
    """An httpx.AsyncClient whose every request goes to ``recorder``."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(recorder)) as c:
        yield c


@pytest.fixture(scope="session")
def config() -> FoundryKitConfig:
    """Create a test config allowing the local dev origin."""
    return FoundryKitConfig(
        server=ServerConfig(host="127.0.0.1", port=8787, allowed_origins=[ALLOWED_ORIGIN]),
    )


@pytest.fixture(scope="session")
def app(config: FoundryKitConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
async def client(app, storage_client) -> AsyncClient:
    """Create an async test client for the relay.

    Outbound storage calls made while handling requests go to the
    ``recorder`` fixture.
    """
    app.state.http_client = storage_client
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(
            transport=transport,
            base_url="http://testserver",
            headers={"Origin": ALLOWED_ORIGIN},
        ) as ac:
            yield ac
    finally:
        app.state.http_client = None
