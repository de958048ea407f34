"""
Pytest configuration and fixtures for pysyncteams tests.

Provides reusable fixtures for fake services, scripted transports and
clients wired to them. No test touches the network.
"""

import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import httpx
import pytest

from pysyncteams import RetryPolicy, WorkflowClient
from pysyncteams.testing import FakeWorkflowService
from pysyncteams.transport import http_client

API_KEY = "sts_test_key"
BASE_URL = "https://api.example.com"

# Retries without real backoff delays
FAST_RETRY = RetryPolicy(max_attempts=3, initial_delay_ms=0, backoff_factor=2.0, max_delay_ms=0)

Resolver = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def json_response(payload: Any, status_code: int = 200, **kwargs: Any) -> httpx.Response:
    return httpx.Response(status_code, json=payload, **kwargs)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


class QueueTransport:
    """Scripted transport: each request is answered by the next resolver."""

    def __init__(self, resolvers: list[Resolver]):
        self._resolvers = list(resolvers)
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._resolvers:
            raise AssertionError(f"Unexpected request with no resolvers remaining: {request.url}")
        resolver = self._resolvers.pop(0)
        response = resolver(request)
        if isinstance(response, Awaitable):
            response = await response
        return response

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def queue_transport() -> Callable[[list[Resolver]], QueueTransport]:
    """Factory for scripted transports."""
    return QueueTransport


@pytest.fixture
def service() -> FakeWorkflowService:
    """In-memory workflow service that checks the test API key."""
    return FakeWorkflowService(api_key=API_KEY)


@pytest.fixture
async def client(service: FakeWorkflowService) -> AsyncGenerator[WorkflowClient, None]:
    """Client wired to the fake service, with instant retries."""
    workflow_client = WorkflowClient(
        api_key=API_KEY,
        base_url=BASE_URL,
        transport=service.transport(),
        retry_policy=FAST_RETRY,
    )
    yield workflow_client
    await workflow_client.aclose()


@pytest.fixture
def recorded_backoff(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace the transport's backoff sleep with a recorder.

    Returns the list of requested delays (milliseconds), in order.
    """
    delays: list[float] = []

    async def fake_sleep(delay_ms: float, cancel_token=None) -> None:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        delays.append(delay_ms)

    monkeypatch.setattr(http_client, "sleep", fake_sleep)
    return delays
