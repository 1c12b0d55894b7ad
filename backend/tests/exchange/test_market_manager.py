"""Tests for MarketManager."""

import threading

import pytest

from feedhub.core.orderbook import Side
from feedhub.config import FeedSettings
from feedhub.errors import ManagerShutdownError
from feedhub.exchange.market_manager import MarketManager
from feedhub.exchange.models import Market, MarketChangeType, OrderbookDelta, OrderbookSnapshot


class EventRecorder:
    """Collects change events and lets tests wait for a given type."""

    def __init__(self):
        self.events = []
        self._cond = threading.Condition()

    def __call__(self, event):
        with self._cond:
            self.events.append(event)
            self._cond.notify_all()

    def wait_for(self, change_type, timeout=2.0):
        with self._cond:
            self._cond.wait_for(lambda: any(e.type is change_type for e in self.events), timeout)
        return [e for e in self.events if e.type is change_type]

    def types(self):
        return [e.type for e in self.events]


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def manager(api, orderbook_stream, recorder):
    mgr = MarketManager(api, orderbook_stream, workers=2)
    mgr.add_listener(recorder)
    yield mgr
    if not mgr._shutdown:
        mgr.shutdown()


class TestSubscriptions:
    """Tests for market subscription bookkeeping."""

    def test_subscribe_creates_markets(self, manager, orderbook_stream, recorder):
        """Test that subscribing registers markets and subscribes the stream."""
        assert manager.subscribe(["KXA", "KXB"]) == ["KXA", "KXB"]
        assert manager.subscribed_tickers() == {"KXA", "KXB"}
        assert manager.subscription_count == 2
        assert orderbook_stream.subscribed == [["KXA", "KXB"]]
        assert manager.is_connected
        assert MarketChangeType.CONNECTED in recorder.types()

    def test_subscribe_single_ticker(self, manager):
        assert manager.subscribe("KXA") == ["KXA"]
        assert manager.is_subscribed("KXA")

    def test_subscribe_existing_is_noop(self, manager, orderbook_stream):
        """Test that only new tickers reach the stream."""
        manager.subscribe(["KXA"])
        assert manager.subscribe(["KXA", "KXB"]) == ["KXB"]
        assert manager.subscribe(["KXA"]) == []
        assert orderbook_stream.subscribed == [["KXA"], ["KXB"]]

    def test_stream_failure_rolls_back(self, manager, api, orderbook_stream):
        """Test that tickers the stream refused are not left subscribed."""
        manager.subscribe("KXA")

        def refuse(tickers, consumer):
            raise ConnectionError("socket closed")

        orderbook_stream.subscribe = refuse
        with pytest.raises(ConnectionError, match="socket closed"):
            manager.subscribe(["KXA", "KXB"])

        assert manager.subscribed_tickers() == {"KXA"}
        assert manager.market("KXB") is None

    def test_metadata_fetched_in_background(self, manager, api, recorder):
        """Test that market info is fetched and published after subscribe."""
        api.markets["KXA"] = Market(ticker="KXA", title="Will it rain?", status="active")
        manager.subscribe("KXA")

        updates = recorder.wait_for(MarketChangeType.MARKET_INFO_UPDATED)
        assert updates[0].ticker == "KXA"
        market = manager.market("KXA")
        assert market.title == "Will it rain?"
        assert market.is_active
        assert market.last_market_update is not None

    def test_metadata_failure_emits_error(self, manager, api, recorder):
        """Test that a failed metadata fetch is reported as an ERROR event."""
        api.market_errors["KXA"] = ConnectionError("api down")
        manager.subscribe("KXA")

        errors = recorder.wait_for(MarketChangeType.ERROR)
        assert errors[0].ticker == "KXA"
        assert "api down" in errors[0].error_message
        assert manager.is_subscribed("KXA")

    def test_unsubscribe(self, manager, orderbook_stream, recorder):
        """Test that unsubscribing drops the market and tells the stream."""
        manager.subscribe(["KXA", "KXB"])
        assert manager.unsubscribe("KXA") == ["KXA"]
        assert manager.subscribed_tickers() == {"KXB"}
        assert orderbook_stream.unsubscribed == [["KXA"]]
        assert MarketChangeType.UNSUBSCRIBED in recorder.types()

    def test_unsubscribe_unknown(self, manager, orderbook_stream):
        assert manager.unsubscribe("NOPE") == []
        assert orderbook_stream.unsubscribed == []

    def test_unsubscribe_all(self, manager):
        manager.subscribe(["KXA", "KXB"])
        assert sorted(manager.unsubscribe_all()) == ["KXA", "KXB"]
        assert manager.subscription_count == 0

    def test_refresh_market_info(self, manager, api, recorder):
        manager.subscribe("KXA")
        api.markets["KXA"] = Market(ticker="KXA", title="Refreshed")
        assert manager.refresh_market_info("KXA") is True
        recorder.wait_for(MarketChangeType.MARKET_INFO_UPDATED)
        assert manager.market("KXA").title == "Refreshed"
        assert manager.refresh_market_info("NOPE") is False

    def test_refresh_all_market_info(self, manager):
        manager.subscribe(["KXA", "KXB"])
        assert manager.refresh_all_market_info() == 2


class TestOrderbookUpdates:
    """Tests for snapshot and delta handling from the stream."""

    def test_snapshot_then_delta(self, manager, orderbook_stream, recorder):
        """Test the 55/54 scenario: a delta that empties the best level."""
        manager.subscribe("KXA")
        consumer = orderbook_stream.consumer

        consumer.on_snapshot(OrderbookSnapshot("KXA", yes=((55, 100), (54, 50)), no=((44, 200),)))
        market = manager.market("KXA")
        assert market.best_yes_bid == 55
        assert market.best_yes_ask == 56
        assert market.yes_spread == 1

        consumer.on_delta(OrderbookDelta("KXA", price=55, delta=-100, side=Side.YES))
        assert market.best_yes_bid == 54
        assert market.has_orderbook

        types = recorder.types()
        assert MarketChangeType.ORDERBOOK_SNAPSHOT in types
        assert MarketChangeType.ORDERBOOK_DELTA in types

    def test_messages_for_unsubscribed_ignored(self, manager, orderbook_stream, recorder):
        """Test that data for unknown tickers changes nothing."""
        manager.subscribe("KXA")
        consumer = orderbook_stream.consumer
        consumer.on_snapshot(OrderbookSnapshot("OTHER", yes=((10, 1),)))
        consumer.on_delta(OrderbookDelta("OTHER", price=10, delta=5, side=Side.NO))

        assert manager.market("OTHER") is None
        assert MarketChangeType.ORDERBOOK_SNAPSHOT not in recorder.types()

    def test_disconnect_and_error(self, manager, orderbook_stream, recorder):
        manager.subscribe("KXA")
        consumer = orderbook_stream.consumer
        consumer.on_error(RuntimeError("bad frame"))
        consumer.on_disconnected(1006, "abnormal")

        assert not manager.is_connected
        errors = [e for e in recorder.events if e.type is MarketChangeType.ERROR and e.ticker is None]
        assert errors[0].error_message == "bad frame"
        assert MarketChangeType.DISCONNECTED in recorder.types()

    def test_failing_listener_isolated(self, manager, orderbook_stream, recorder):
        """Test that a raising listener does not block book updates or other listeners."""

        def bad(event):
            raise RuntimeError("listener bug")

        manager.add_listener(bad)
        manager.subscribe("KXA")
        orderbook_stream.consumer.on_snapshot(OrderbookSnapshot("KXA", yes=((30, 5),)))
        assert manager.market("KXA").best_yes_bid == 30
        assert MarketChangeType.ORDERBOOK_SNAPSHOT in recorder.types()
        assert manager.remove_listener(bad)


class TestLifecycle:
    """Tests for shutdown."""

    def test_shutdown(self, manager, orderbook_stream):
        manager.subscribe("KXA")
        manager.shutdown()
        assert orderbook_stream.closed
        assert manager.subscription_count == 0
        assert not manager.is_connected

    def test_use_after_shutdown(self, manager):
        manager.shutdown()
        with pytest.raises(ManagerShutdownError):
            manager.subscribe("KXA")

    def test_double_shutdown_raises(self, manager):
        manager.shutdown()
        with pytest.raises(ManagerShutdownError):
            manager.shutdown()

    def test_from_settings(self, api, orderbook_stream):
        """Test that worker count and shutdown timeout come from settings."""
        manager = MarketManager.from_settings(api, orderbook_stream, FeedSettings(workers=6, shutdown_timeout=2.5))
        assert manager._pool.max_workers == 6
        assert manager._shutdown_timeout == 2.5
        manager.shutdown()

    def test_requires_collaborators(self, api, orderbook_stream):
        with pytest.raises(ValueError):
            MarketManager(None, orderbook_stream)
        with pytest.raises(ValueError):
            MarketManager(api, None)
