"""Pytest configuration and fixtures."""

import threading
from collections.abc import Collection

import pytest

from feedhub.market.interface import QuoteTransport
from feedhub.market.models import Quote


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport(QuoteTransport):
    """Transport that records every fetch and quotes each symbol at a fixed price."""

    def __init__(self, prices: dict[str, float] | None = None, interval: float = 60.0):
        self.prices = dict(prices or {})
        self.interval = interval
        self.calls: list[list[str]] = []
        self.error: Exception | None = None
        self.closed = False
        self.fetched = threading.Event()

    @property
    def provider_name(self) -> str:
        return "FAKE"

    @property
    def poll_interval(self) -> float:
        return self.interval

    def fetch(self, symbols: Collection[str]) -> dict[str, Quote]:
        self.calls.append(list(symbols))
        try:
            if self.error is not None:
                raise self.error
            return {
                s: Quote(symbol=s, last_price=self.prices[s], bid=self.prices[s] - 0.01, ask=self.prices[s] + 0.01)
                for s in symbols
                if s in self.prices
            }
        finally:
            self.fetched.set()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def transport():
    return FakeTransport({"AAPL": 190.0, "MSFT": 420.0, "GOOGL": 175.0})


@pytest.fixture
def make_transport():
    """Factory for FakeTransport with custom prices."""
    return FakeTransport
