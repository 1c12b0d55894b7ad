"""Thread-safe store of the latest quote per symbol."""

from __future__ import annotations

from collections.abc import Iterable
from threading import Lock

from .models import Quote


class QuoteCache:
    """Latest consolidated quote for each symbol.

    Writer: the manager's poll thread, once per delivered cycle.
    Readers: SSE streams and any synchronous query path.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, Quote] = {}
        self._lock = Lock()
        self._version: int = 0  # Bumped on every write batch

    def update(self, quote: Quote) -> None:
        with self._lock:
            self._quotes[quote.symbol] = quote
            self._version += 1

    def update_many(self, quotes: Iterable[Quote]) -> int:
        """Store a batch of quotes under a single version bump. Returns the count."""
        with self._lock:
            count = 0
            for quote in quotes:
                self._quotes[quote.symbol] = quote
                count += 1
            if count:
                self._version += 1
            return count

    def get(self, symbol: str) -> Quote | None:
        with self._lock:
            return self._quotes.get(symbol)

    def get_all(self) -> dict[str, Quote]:
        """Shallow copy of every stored quote."""
        with self._lock:
            return dict(self._quotes)

    def get_price(self, symbol: str) -> float | None:
        quote = self.get(symbol)
        return quote.last_price if quote else None

    def remove(self, symbol: str) -> None:
        with self._lock:
            self._quotes.pop(symbol, None)

    def retain(self, symbols: Iterable[str]) -> None:
        """Drop every symbol not in ``symbols``."""
        keep = set(symbols)
        with self._lock:
            for symbol in [s for s in self._quotes if s not in keep]:
                del self._quotes[symbol]

    def clear(self) -> None:
        with self._lock:
            self._quotes.clear()
            self._version += 1

    @property
    def version(self) -> int:
        """Monotonic write counter, for cheap change detection."""
        return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._quotes
