"""Data models for consolidated quotes."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable provider-neutral quote for a single symbol."""

    symbol: str
    last_price: float | None = None
    bid: float | None = None
    ask: float | None = None
    bid_size: int | None = None
    ask_size: int | None = None
    change: float | None = None
    change_percent: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None
    volume: int | None = None
    timestamp: float = field(default_factory=time.time)  # Unix seconds
    status: str | None = None
    real_time: bool = False

    @property
    def spread(self) -> float | None:
        """Ask minus bid, or None if either side is missing."""
        if self.bid is None or self.ask is None:
            return None
        return round(self.ask - self.bid, 4)

    @property
    def mid(self) -> float | None:
        if self.bid is None or self.ask is None:
            return None
        return round((self.bid + self.ask) / 2, 4)

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat' based on the change since previous close."""
        if self.change is None or self.change == 0:
            return "flat"
        return "up" if self.change > 0 else "down"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        data = asdict(self)
        data["spread"] = self.spread
        data["direction"] = self.direction
        return data
