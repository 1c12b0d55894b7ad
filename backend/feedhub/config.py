"""Environment-driven settings for feedhub managers."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

PROVIDER_PROPERTY = "marketdata.provider"


def _read_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _read_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class FeedSettings:
    """Settings shared by the quote factory and the exchange managers.

    Environment variables (blank means unset):
        MARKETDATA_PROVIDER          provider name, e.g. SIMULATOR or MASSIVE
        MASSIVE_API_KEY              enables the Massive provider
        MARKETDATA_POLL_INTERVAL     seconds between consolidated polls
        MARKETDATA_WORKERS           background worker threads per manager
        MARKETDATA_SERIES_TTL        series cache TTL, seconds
        MARKETDATA_EVENT_TTL         event cache TTL, seconds
        MARKETDATA_MARKET_TTL        market cache TTL, seconds
        MARKETDATA_SHUTDOWN_TIMEOUT  bounded wait for threads on shutdown
    """

    provider: str | None = None
    massive_api_key: str | None = None
    poll_interval: float | None = None  # None: the provider's own default
    workers: int = 4
    series_ttl: float = 24 * 3600.0
    event_ttl: float = 30 * 60.0
    market_ttl: float = 5 * 60.0
    shutdown_timeout: float = 5.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FeedSettings:
        env = os.environ if environ is None else environ
        defaults = cls()
        provider = env.get("MARKETDATA_PROVIDER", "").strip().upper() or None
        api_key = env.get("MASSIVE_API_KEY", "").strip() or None
        poll_raw = env.get("MARKETDATA_POLL_INTERVAL", "").strip()
        return cls(
            provider=provider,
            massive_api_key=api_key,
            poll_interval=_read_float(env, "MARKETDATA_POLL_INTERVAL", 0.0) if poll_raw else None,
            workers=_read_int(env, "MARKETDATA_WORKERS", defaults.workers),
            series_ttl=_read_float(env, "MARKETDATA_SERIES_TTL", defaults.series_ttl),
            event_ttl=_read_float(env, "MARKETDATA_EVENT_TTL", defaults.event_ttl),
            market_ttl=_read_float(env, "MARKETDATA_MARKET_TTL", defaults.market_ttl),
            shutdown_timeout=_read_float(env, "MARKETDATA_SHUTDOWN_TIMEOUT", defaults.shutdown_timeout),
        )

    def to_properties(self) -> dict[str, str]:
        """Flatten into the string mapping consumed by ProviderRegistry.create()."""
        props: dict[str, str] = {}
        if self.provider:
            props[PROVIDER_PROPERTY] = self.provider
        if self.massive_api_key:
            props["massive.api_key"] = self.massive_api_key
        if self.poll_interval is not None:
            props["marketdata.poll_interval"] = str(self.poll_interval)
        props["marketdata.shutdown_timeout"] = str(self.shutdown_timeout)
        return props
