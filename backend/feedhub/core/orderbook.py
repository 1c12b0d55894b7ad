"""Incrementally maintained order book for binary-outcome instruments."""

from __future__ import annotations

import operator
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from threading import Lock

from sortedcontainers import SortedDict

# Prices are in cents; a YES contract and a NO contract together pay 100.
FULL_VALUE = 100


class Side(str, Enum):
    YES = "yes"
    NO = "no"

    @property
    def opposite(self) -> Side:
        return Side.NO if self is Side.YES else Side.YES

    @classmethod
    def parse(cls, value: Side | str | bool) -> Side:
        """Accept a Side, "yes"/"no" in any case, or a yes-side boolean."""
        if isinstance(value, Side):
            return value
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown order book side: {value!r}") from None


@dataclass(frozen=True, slots=True)
class PriceLevel:
    price: int
    quantity: int

    def __str__(self) -> str:
        return f"{self.price}c x {self.quantity}"


LevelInput = PriceLevel | Sequence[int]


def _unpack(level: LevelInput) -> tuple[int, int]:
    if isinstance(level, PriceLevel):
        return level.price, level.quantity
    return int(level[0]), int(level[1])


class BinaryOrderBook:
    """Two bid ladders (YES and NO) built from a snapshot plus deltas.

    Only bids are transmitted. The ask on one side is derived from the best
    bid on the other: ``ask(YES) = full_value - best_bid(NO)``, which keeps
    ``price + complementary price == full_value``.

    Ladders never hold a level with quantity <= 0. Deltas must be applied in
    the order they were received; there is no sequence checking, and a
    snapshot simply replaces whatever came before it.
    """

    def __init__(self, full_value: int = FULL_VALUE) -> None:
        self._full_value = full_value
        # Keyed by negated price so the first item is the best (highest) bid.
        self._ladders: dict[Side, SortedDict] = {
            Side.YES: SortedDict(operator.neg),
            Side.NO: SortedDict(operator.neg),
        }
        self._lock = Lock()
        self._last_update: float | None = None

    @property
    def full_value(self) -> int:
        return self._full_value

    @property
    def last_update(self) -> float | None:
        """Wall-clock time of the last snapshot or delta, None if never updated."""
        return self._last_update

    @property
    def has_book(self) -> bool:
        return self._last_update is not None

    # --- Updates ---

    def apply_snapshot(
        self,
        yes_levels: Iterable[LevelInput] | None,
        no_levels: Iterable[LevelInput] | None,
    ) -> None:
        """Replace both ladders. Levels with quantity <= 0 are dropped."""
        with self._lock:
            for side, levels in ((Side.YES, yes_levels), (Side.NO, no_levels)):
                ladder = self._ladders[side]
                ladder.clear()
                for level in levels or ():
                    price, quantity = _unpack(level)
                    if quantity > 0:
                        ladder[price] = quantity
            self._last_update = time.time()

    def apply_delta(self, side: Side | str | bool, price: int, delta: int) -> int:
        """Add ``delta`` to the quantity at ``price``. Returns the new quantity.

        A result <= 0 removes the level, so the returned value is never
        negative.
        """
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            quantity = ladder.get(price, 0) + delta
            if quantity <= 0:
                ladder.pop(price, None)
                quantity = 0
            else:
                ladder[price] = quantity
            self._last_update = time.time()
        return quantity

    def clear(self) -> None:
        with self._lock:
            for ladder in self._ladders.values():
                ladder.clear()
            self._last_update = None

    # --- Queries ---

    def best_bid(self, side: Side | str | bool) -> int | None:
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            if not ladder:
                return None
            return ladder.peekitem(0)[0]

    def best_ask(self, side: Side | str | bool) -> int | None:
        opposite_bid = self.best_bid(Side.parse(side).opposite)
        if opposite_bid is None:
            return None
        return self._full_value - opposite_bid

    def spread(self, side: Side | str | bool) -> int | None:
        side = Side.parse(side)
        with self._lock:
            bid = self._peek(side)
            opposite_bid = self._peek(side.opposite)
        if bid is None or opposite_bid is None:
            return None
        return (self._full_value - opposite_bid) - bid

    def bids(self, side: Side | str | bool, limit: int | None = None) -> list[PriceLevel]:
        """Bid levels for ``side``, best (highest) first."""
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            items = ladder.items()[:limit] if limit is not None else ladder.items()
            return [PriceLevel(price, quantity) for price, quantity in items]

    def asks(self, side: Side | str | bool, limit: int | None = None) -> list[PriceLevel]:
        """Ask levels for ``side`` derived from the opposite bids, best (lowest) first."""
        opposite = self._ladders[Side.parse(side).opposite]
        with self._lock:
            items = opposite.items()[:limit] if limit is not None else opposite.items()
            return [PriceLevel(self._full_value - price, quantity) for price, quantity in items]

    def depth(self, side: Side | str | bool) -> int:
        """Total resting quantity across all bid levels of ``side``."""
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            return sum(ladder.values())

    def level_count(self, side: Side | str | bool) -> int:
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            return len(ladder)

    def quantity_at(self, side: Side | str | bool, price: int) -> int:
        ladder = self._ladders[Side.parse(side)]
        with self._lock:
            return ladder.get(price, 0)

    def to_dict(self) -> dict:
        """Serialize both ladders as ``[[price, qty], ...]`` lists, best first."""
        with self._lock:
            return {
                "yes": [[p, q] for p, q in self._ladders[Side.YES].items()],
                "no": [[p, q] for p, q in self._ladders[Side.NO].items()],
                "last_update": self._last_update,
            }

    def _peek(self, side: Side) -> int | None:
        ladder = self._ladders[side]
        return ladder.peekitem(0)[0] if ladder else None

    def __repr__(self) -> str:
        return (
            f"BinaryOrderBook(best_yes_bid={self.best_bid(Side.YES)}, "
            f"best_yes_ask={self.best_ask(Side.YES)}, "
            f"yes_levels={self.level_count(Side.YES)}, no_levels={self.level_count(Side.NO)})"
        )
