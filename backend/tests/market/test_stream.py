"""Tests for the SSE quote stream."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from feedhub.market.manager import ConsolidatedQuoteManager
from feedhub.market.models import Quote
from feedhub.market.stream import _format_quotes, _generate_events, create_stream_router


class FakeRequest:
    """Minimal stand-in for a Starlette request."""

    client = None

    def __init__(self, disconnect_after: int = 1_000):
        self._polls = 0
        self._disconnect_after = disconnect_after

    async def is_disconnected(self) -> bool:
        self._polls += 1
        return self._polls > self._disconnect_after


@pytest.fixture
def manager(transport):
    mgr = ConsolidatedQuoteManager(transport)
    yield mgr
    if mgr.is_running:
        mgr.shutdown()


class TestStreamRouter:
    """Tests for the router factory."""

    def test_missing_symbols_rejected(self, manager):
        """Test that a request without symbols is a 400."""
        app = FastAPI()
        app.include_router(create_stream_router(manager))
        with TestClient(app) as client:
            response = client.get("/api/stream/quotes")
        assert response.status_code == 400

    def test_route_registered(self, manager):
        router = create_stream_router(manager, default_symbols=["AAPL"])
        assert "/api/stream/quotes" in [route.path for route in router.routes]

    def test_format_quotes(self):
        line = _format_quotes([Quote(symbol="AAPL", last_price=1.5, timestamp=1.0)])
        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        payload = json.loads(line[len("data: ") :])
        assert payload["AAPL"]["last_price"] == 1.5


@pytest.mark.asyncio
class TestGenerateEvents:
    """Tests for the SSE event generator."""

    async def test_streams_quotes_then_unsubscribes(self, manager):
        """Test retry header, a data event, and cleanup on close."""
        events = _generate_events(manager, ["AAPL", "MSFT"], FakeRequest())

        assert await events.__anext__() == "retry: 1000\n\n"
        assert manager.active_subscription_count == 1

        data = await events.__anext__()
        assert data.startswith("data: ")
        payload = json.loads(data[len("data: ") :])
        assert set(payload) == {"AAPL", "MSFT"}

        await events.aclose()
        assert manager.active_subscription_count == 0

    async def test_error_event(self, manager, transport):
        """Test that upstream failures are sent as error events."""
        transport.error = ConnectionError("upstream down")
        events = _generate_events(manager, ["AAPL"], FakeRequest())

        await events.__anext__()  # retry
        message = await events.__anext__()
        assert message.startswith("event: error\n")
        assert "upstream down" in message
        await events.aclose()

    async def test_keep_alive(self, manager):
        """Test that a quiet stream sends heartbeats."""
        events = _generate_events(manager, ["ZZZZ"], FakeRequest(), heartbeat=0.01)
        await events.__anext__()  # retry
        assert await events.__anext__() == ": keep-alive\n\n"
        await events.aclose()

    async def test_client_disconnect_ends_stream(self, manager):
        """Test that a disconnected client ends the generator and its subscription."""
        events = _generate_events(manager, ["AAPL"], FakeRequest(disconnect_after=0))
        await events.__anext__()  # retry
        with pytest.raises(StopAsyncIteration):
            await events.__anext__()
        assert manager.active_subscription_count == 0
