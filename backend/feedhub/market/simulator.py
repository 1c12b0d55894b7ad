"""GBM-based quote simulator and the transport that serves it."""

from __future__ import annotations

import logging
import math
import random
import time
from collections.abc import Collection
from threading import Lock

import numpy as np

from .interface import QuoteTransport
from .models import Quote
from .seed_prices import (
    CROSS_SECTOR_CORR,
    DEFAULT_PROFILE,
    IDIOSYNCRATIC,
    INTRA_SECTOR_CORR,
    RANDOM_PRICE_RANGE,
    SECTORS,
    TICKER_PROFILES,
)

logger = logging.getLogger(__name__)


class _SymbolState:
    __slots__ = ("price", "previous_close", "open", "high", "low", "volume", "sigma", "mu", "spread_bps")

    def __init__(self, price: float, sigma: float, mu: float, spread_bps: float) -> None:
        self.price = price
        self.previous_close = price
        self.open = price
        self.high = price
        self.low = price
        self.volume = 0
        self.sigma = sigma
        self.mu = mu
        self.spread_bps = spread_bps


class QuoteSimulator:
    """Correlated Geometric Brownian Motion over an evolving symbol universe.

    Math:
        S(t+dt) = S(t) * exp((mu - sigma^2/2) * dt + sigma * sqrt(dt) * Z)

    Z is drawn jointly for the symbols in a step and correlated through the
    Cholesky factor of a sector-based correlation matrix. Only the symbols
    requested in a step move; everything else keeps its last price, so a
    symbol that drops out of a subscription and comes back resumes where it
    left off.
    """

    TRADING_SECONDS_PER_YEAR = 252 * 6.5 * 3600

    def __init__(
        self,
        step_seconds: float = 5.0,
        event_probability: float = 0.001,
        seed: int | None = None,
    ) -> None:
        self._dt = step_seconds / self.TRADING_SECONDS_PER_YEAR
        self._event_prob = event_probability
        self._rng = np.random.default_rng(seed)
        self._random = random.Random(seed)
        self._states: dict[str, _SymbolState] = {}
        self._cholesky_cache: dict[tuple[str, ...], np.ndarray | None] = {}

    @property
    def dt(self) -> float:
        return self._dt

    def symbols(self) -> list[str]:
        return list(self._states)

    def price(self, symbol: str) -> float | None:
        state = self._states.get(symbol)
        return round(state.price, 2) if state else None

    def step(self, symbols: Collection[str]) -> dict[str, Quote]:
        """Advance ``symbols`` by one time step and quote them."""
        ordered = tuple(sorted(set(symbols)))
        if not ordered:
            return {}
        for symbol in ordered:
            self._ensure(symbol)

        z = self._rng.standard_normal(len(ordered))
        cholesky = self._cholesky(ordered)
        if cholesky is not None:
            z = cholesky @ z

        now = time.time()
        quotes: dict[str, Quote] = {}
        for i, symbol in enumerate(ordered):
            state = self._states[symbol]
            drift = (state.mu - 0.5 * state.sigma**2) * self._dt
            diffusion = state.sigma * math.sqrt(self._dt) * z[i]
            state.price *= math.exp(drift + diffusion)

            if self._random.random() < self._event_prob:
                shock = self._random.uniform(0.02, 0.05) * self._random.choice([-1, 1])
                state.price *= 1 + shock
                logger.debug("Random event on %s: %+.1f%%", symbol, shock * 100)

            state.high = max(state.high, state.price)
            state.low = min(state.low, state.price)
            state.volume += self._random.randint(100, 5_000)
            quotes[symbol] = self._quote(symbol, state, now)
        return quotes

    def forget(self, symbol: str) -> None:
        """Drop all state for ``symbol``. No-op if unknown."""
        if self._states.pop(symbol, None) is not None:
            self._cholesky_cache.clear()

    # --- Internals ---

    def _ensure(self, symbol: str) -> None:
        if symbol in self._states:
            return
        profile = TICKER_PROFILES.get(symbol)
        if profile is None:
            profile = dict(DEFAULT_PROFILE, price=self._random.uniform(*RANDOM_PRICE_RANGE))
        self._states[symbol] = _SymbolState(
            price=profile["price"],
            sigma=profile["sigma"],
            mu=profile["mu"],
            spread_bps=profile["spread_bps"],
        )

    def _quote(self, symbol: str, state: _SymbolState, timestamp: float) -> Quote:
        half_spread = max(state.price * state.spread_bps / 20_000, 0.005)
        last = round(state.price, 2)
        change = round(last - state.previous_close, 4)
        return Quote(
            symbol=symbol,
            last_price=last,
            bid=round(state.price - half_spread, 2),
            ask=round(state.price + half_spread, 2),
            bid_size=self._random.randint(1, 20) * 100,
            ask_size=self._random.randint(1, 20) * 100,
            change=change,
            change_percent=round(change / state.previous_close * 100, 4) if state.previous_close else 0.0,
            high=round(state.high, 2),
            low=round(state.low, 2),
            open=round(state.open, 2),
            previous_close=round(state.previous_close, 2),
            volume=state.volume,
            timestamp=timestamp,
            status="SIMULATED",
            real_time=True,
        )

    def _cholesky(self, symbols: tuple[str, ...]) -> np.ndarray | None:
        """Cholesky factor of the correlation matrix for ``symbols``, memoized."""
        if len(symbols) <= 1:
            return None
        if symbols in self._cholesky_cache:
            return self._cholesky_cache[symbols]

        n = len(symbols)
        corr = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                rho = self.pairwise_correlation(symbols[i], symbols[j])
                corr[i, j] = corr[j, i] = rho
        try:
            factor: np.ndarray | None = np.linalg.cholesky(corr)
        except np.linalg.LinAlgError:
            logger.warning("Correlation matrix not positive definite for %s; using independent draws", symbols)
            factor = None
        self._cholesky_cache[symbols] = factor
        return factor

    @staticmethod
    def pairwise_correlation(s1: str, s2: str) -> float:
        if s1 in IDIOSYNCRATIC or s2 in IDIOSYNCRATIC:
            return CROSS_SECTOR_CORR
        for sector, members in SECTORS.items():
            if s1 in members and s2 in members:
                return INTRA_SECTOR_CORR[sector]
        return CROSS_SECTOR_CORR


class SimulatedQuoteTransport(QuoteTransport):
    """QuoteTransport backed by QuoteSimulator. Needs no credentials.

    Each ``fetch`` advances exactly the requested symbols, so it behaves
    like an upstream that answers only what it is asked.
    """

    def __init__(
        self,
        poll_interval: float = 1.0,
        event_probability: float = 0.001,
        seed: int | None = None,
    ) -> None:
        self._interval = poll_interval
        self._sim = QuoteSimulator(step_seconds=poll_interval, event_probability=event_probability, seed=seed)
        self._lock = Lock()
        self._fetch_count = 0

    @property
    def provider_name(self) -> str:
        return "SIMULATOR"

    @property
    def poll_interval(self) -> float:
        return self._interval

    @property
    def simulator(self) -> QuoteSimulator:
        return self._sim

    @property
    def fetch_count(self) -> int:
        """Number of upstream calls served."""
        return self._fetch_count

    def fetch(self, symbols: Collection[str]) -> dict[str, Quote]:
        with self._lock:
            self._fetch_count += 1
            return self._sim.step([s.upper().strip() for s in symbols])
