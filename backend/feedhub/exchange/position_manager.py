"""Tracks the member's open positions from the position stream."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from decimal import Decimal
from threading import Lock

from ..core.bus import ListenerBus
from .interface import PositionStream
from .models import Position, PositionChangeEvent, PositionChangeType

logger = logging.getLogger(__name__)


class PositionManager:
    """Holds the latest non-flat Position per market ticker.

    An update for a ticker not held yet is ADDED, a flat update is CLOSED
    and removes the ticker, anything else is UPDATED. Totals are computed
    from a snapshot of the held positions.
    """

    def __init__(self, stream: PositionStream) -> None:
        if stream is None:
            raise ValueError("stream must not be None")
        self._stream = stream
        self._positions: dict[str, Position] = {}
        self._lock = Lock()
        self._state_lock = Lock()
        self._listeners: ListenerBus[PositionChangeEvent] = ListenerBus("position change")
        self._consumer = _PositionConsumer(self)
        self._running = False

    # --- Lifecycle ---

    def start(self, tickers: Iterable[str] | None = None) -> None:
        """Subscribe to position updates, for every market or only ``tickers``."""
        with self._state_lock:
            if self._running:
                logger.warning("PositionManager is already running")
                return
            tickers = list(tickers) if tickers is not None else None
            if tickers:
                logger.info("Starting PositionManager for tickers: %s", tickers)
            else:
                logger.info("Starting PositionManager")
            self._stream.subscribe(self._consumer, tickers or None)
            self._running = True

    def stop(self) -> None:
        with self._state_lock:
            if not self._running:
                return
            logger.info("Stopping PositionManager")
            self._stream.close()
            self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._running and self._stream.is_connected()

    # --- Updates (reader thread) ---

    def handle_position_update(self, position: Position) -> PositionChangeType:
        ticker = position.market_ticker
        with self._lock:
            held = ticker in self._positions
            if position.is_flat:
                self._positions.pop(ticker, None)
                change = PositionChangeType.CLOSED
            else:
                self._positions[ticker] = position
                change = PositionChangeType.UPDATED if held else PositionChangeType.ADDED

        logger.debug("Position %s for %s: %s", change.value, ticker, position)
        self._notify(PositionChangeEvent(change, position))
        return change

    def handle_connected(self) -> None:
        logger.info("PositionManager connected")
        self._notify(PositionChangeEvent(PositionChangeType.CONNECTED))

    def handle_disconnected(self, code: int, reason: str) -> None:
        logger.info("PositionManager disconnected: %s - %s", code, reason)
        self._notify(PositionChangeEvent(PositionChangeType.DISCONNECTED))

    def handle_error(self, error: BaseException) -> None:
        logger.error("PositionManager error: %s", error)
        self._notify(PositionChangeEvent(PositionChangeType.ERROR, error_message=str(error)))

    # --- Queries ---

    def position(self, ticker: str) -> Position | None:
        with self._lock:
            return self._positions.get(ticker)

    def positions(self) -> list[Position]:
        with self._lock:
            return list(self._positions.values())

    def position_tickers(self) -> set[str]:
        with self._lock:
            return set(self._positions)

    @property
    def position_count(self) -> int:
        with self._lock:
            return len(self._positions)

    def has_position(self, ticker: str) -> bool:
        with self._lock:
            return ticker in self._positions

    def total_position_size(self) -> int:
        return sum(p.absolute_size for p in self.positions())

    def total_realized_pnl(self) -> Decimal:
        return sum((p.realized_pnl_dollars for p in self.positions()), Decimal("0"))

    def total_fees_paid(self) -> Decimal:
        return sum((p.fees_paid_dollars for p in self.positions()), Decimal("0"))

    def total_volume(self) -> int:
        return sum(p.volume or 0 for p in self.positions())

    def long_positions(self) -> list[Position]:
        return [p for p in self.positions() if p.is_long]

    def short_positions(self) -> list[Position]:
        return [p for p in self.positions() if p.is_short]

    # --- Listeners ---

    def add_listener(self, listener: Callable[[PositionChangeEvent], None]) -> None:
        self._listeners.add_listener(listener)

    def remove_listener(self, listener: Callable[[PositionChangeEvent], None]) -> bool:
        return self._listeners.remove_listener(listener)

    def _notify(self, event: PositionChangeEvent) -> None:
        self._listeners.notify(event)


class _PositionConsumer:
    def __init__(self, manager: PositionManager) -> None:
        self._manager = manager

    def on_connected(self) -> None:
        self._manager.handle_connected()

    def on_position_update(self, position: Position) -> None:
        self._manager.handle_position_update(position)

    def on_disconnected(self, code: int, reason: str) -> None:
        self._manager.handle_disconnected(code, reason)

    def on_error(self, error: BaseException) -> None:
        self._manager.handle_error(error)
