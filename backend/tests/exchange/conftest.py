"""Fakes for the exchange collaborators."""

import threading

import pytest

from feedhub.exchange.interface import ExchangeApi, OrderbookStream, PositionStream
from feedhub.exchange.models import Event, Market


class FakeExchangeApi(ExchangeApi):
    """In-memory REST lookups with optional failures and a load gate."""

    def __init__(self):
        self.markets: dict[str, Market] = {}
        self.events: dict[str, Event] = {}
        self.series_events: dict[str, list[Event]] = {}
        self.market_errors: dict[str, Exception] = {}
        self.series_errors: dict[str, Exception] = {}
        self.gate: threading.Event | None = None
        self.event_calls: list[str] = []
        self.series_calls: list[str] = []

    def get_market(self, ticker):
        if ticker in self.market_errors:
            raise self.market_errors[ticker]
        return self.markets.get(ticker)

    def get_event(self, event_ticker):
        self.event_calls.append(event_ticker)
        if event_ticker in self.market_errors:
            raise self.market_errors[event_ticker]
        return self.events.get(event_ticker)

    def iter_events(self, series_ticker):
        self.series_calls.append(series_ticker)
        if self.gate is not None:
            self.gate.wait(5.0)
        for event in self.series_events.get(series_ticker, []):
            yield event
        if series_ticker in self.series_errors:
            raise self.series_errors[series_ticker]


class FakeOrderbookStream(OrderbookStream):
    def __init__(self):
        self.consumer = None
        self.subscribed: list[list[str]] = []
        self.unsubscribed: list[list[str]] = []
        self.connected = False
        self.closed = False

    def subscribe(self, tickers, consumer):
        self.consumer = consumer
        self.subscribed.append(list(tickers))
        if not self.connected:
            self.connected = True
            consumer.on_connected()

    def unsubscribe(self, tickers):
        self.unsubscribed.append(list(tickers))

    def is_connected(self):
        return self.connected

    def close(self):
        self.connected = False
        self.closed = True


class FakePositionStream(PositionStream):
    def __init__(self):
        self.consumer = None
        self.tickers = None
        self.connected = False
        self.close_count = 0

    def subscribe(self, consumer, tickers=None):
        self.consumer = consumer
        self.tickers = tickers
        self.connected = True
        consumer.on_connected()

    def is_connected(self):
        return self.connected

    def close(self):
        self.connected = False
        self.close_count += 1


@pytest.fixture
def api():
    return FakeExchangeApi()


@pytest.fixture
def orderbook_stream():
    return FakeOrderbookStream()


@pytest.fixture
def position_stream():
    return FakePositionStream()
