"""Massive (Polygon.io) REST transport for real quotes."""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any

from ..errors import TransportError
from .interface import QuoteTransport
from .models import Quote

logger = logging.getLogger(__name__)


def _get(obj: Any, name: str) -> Any:
    return getattr(obj, name, None) if obj is not None else None


class MassiveQuoteTransport(QuoteTransport):
    """QuoteTransport backed by the Massive (Polygon.io) snapshot endpoint.

    GET /v2/snapshot/locale/us/markets/stocks/tickers returns every
    requested ticker in one call, which is exactly the shape the
    consolidated poller needs.

    Rate limits:
      - Free tier: 5 req/min -> poll every 15s (default)
      - Paid tiers: higher limits -> poll every 2-5s
    """

    def __init__(
        self,
        api_key: str,
        poll_interval: float = 15.0,
        client: Any = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("api_key is required")
        self._api_key = api_key.strip()
        self._interval = poll_interval
        self._client = client  # Created lazily on first fetch

    @property
    def provider_name(self) -> str:
        return "MASSIVE"

    @property
    def poll_interval(self) -> float:
        return self._interval

    def is_authenticated(self) -> bool:
        return bool(self._api_key)

    def fetch(self, symbols: Collection[str]) -> dict[str, Quote]:
        tickers = [s.upper().strip() for s in symbols]
        if not tickers:
            return {}
        try:
            snapshots = self._fetch_snapshots(tickers)
        except Exception as exc:
            # Common failures: 401 (bad key), 429 (rate limit), network errors.
            raise TransportError(f"Massive snapshot request failed: {exc}", self.provider_name) from exc

        quotes: dict[str, Quote] = {}
        for snap in snapshots or ():
            try:
                quote = self._to_quote(snap)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping snapshot for %s: %s", getattr(snap, "ticker", "???"), e)
                continue
            quotes[quote.symbol] = quote
        logger.debug("Massive fetch: %d/%d tickers quoted", len(quotes), len(tickers))
        return quotes

    def close(self) -> None:
        self._client = None

    # --- Internal ---

    def _ensure_client(self) -> Any:
        if self._client is None:
            # Imported here so the simulator path never needs the package loaded.
            from massive import RESTClient

            self._client = RESTClient(api_key=self._api_key)
        return self._client

    def _fetch_snapshots(self, tickers: list[str]) -> list:
        """Synchronous call to the Massive REST API."""
        from massive.rest.models import SnapshotMarketType

        return self._ensure_client().get_snapshot_all(
            market_type=SnapshotMarketType.STOCKS,
            tickers=tickers,
        )

    @staticmethod
    def _to_quote(snap: Any) -> Quote:
        trade = snap.last_trade
        price = float(trade.price)
        # Massive timestamps are Unix milliseconds -> convert to seconds
        timestamp = trade.timestamp / 1000.0
        last_quote = _get(snap, "last_quote")
        day = _get(snap, "day")
        prev_day = _get(snap, "prev_day")
        volume = _get(day, "volume")
        return Quote(
            symbol=str(snap.ticker).upper(),
            last_price=price,
            bid=_get(last_quote, "bid_price"),
            ask=_get(last_quote, "ask_price"),
            bid_size=_get(last_quote, "bid_size"),
            ask_size=_get(last_quote, "ask_size"),
            change=_get(snap, "todays_change"),
            change_percent=_get(snap, "todays_change_percent"),
            high=_get(day, "high"),
            low=_get(day, "low"),
            open=_get(day, "open"),
            previous_close=_get(prev_day, "close"),
            volume=int(volume) if volume is not None else None,
            timestamp=timestamp,
            status="REALTIME",
            real_time=True,
        )
