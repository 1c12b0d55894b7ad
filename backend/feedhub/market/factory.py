"""Provider registry and factory for market data managers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from threading import Lock

from ..config import PROVIDER_PROPERTY, FeedSettings
from .cache import QuoteCache
from .interface import MarketDataManager
from .manager import ConsolidatedQuoteManager

logger = logging.getLogger(__name__)

ManagerFactory = Callable[[Mapping[str, str]], MarketDataManager]


class ProviderRegistry:
    """Explicit provider name -> manager factory lookup.

    Build one at startup and pass it to whatever needs to create managers;
    tests can register fake providers on their own instance.
    """

    def __init__(self) -> None:
        self._factories: dict[str, ManagerFactory] = {}
        self._lock = Lock()

    def register(self, provider_name: str, factory: ManagerFactory) -> None:
        if not provider_name or not provider_name.strip():
            raise ValueError("provider_name is required")
        if factory is None:
            raise ValueError("factory is required")
        name = provider_name.strip().upper()
        with self._lock:
            self._factories[name] = factory
        logger.info("Registered market data provider: %s", name)

    def unregister(self, provider_name: str) -> ManagerFactory | None:
        with self._lock:
            return self._factories.pop(provider_name.strip().upper(), None)

    def get(self, provider_name: str) -> ManagerFactory | None:
        with self._lock:
            return self._factories.get(provider_name.strip().upper())

    def has(self, provider_name: str) -> bool:
        return self.get(provider_name) is not None

    def providers(self) -> set[str]:
        with self._lock:
            return set(self._factories)

    def create(self, properties: Mapping[str, str]) -> MarketDataManager:
        """Create a manager for ``properties["marketdata.provider"]``."""
        provider = (properties.get(PROVIDER_PROPERTY) or "").strip().upper()
        if not provider:
            raise ValueError(
                f"Missing required property: {PROVIDER_PROPERTY}. "
                f"Available providers: {sorted(self.providers())}"
            )
        factory = self.get(provider)
        if factory is None:
            raise ValueError(
                f"Unknown market data provider: {provider}. "
                f"Available providers: {sorted(self.providers())}"
            )
        logger.info("Creating market data manager for provider: %s", provider)
        return factory(properties)


def _optional_float(properties: Mapping[str, str], key: str) -> float | None:
    raw = (properties.get(key) or "").strip()
    return float(raw) if raw else None


def _create_simulator_manager(properties: Mapping[str, str]) -> MarketDataManager:
    from .simulator import SimulatedQuoteTransport

    interval = _optional_float(properties, "marketdata.poll_interval")
    transport = SimulatedQuoteTransport(poll_interval=interval or 1.0)
    return ConsolidatedQuoteManager(
        transport,
        quote_cache=QuoteCache(),
        join_timeout=_optional_float(properties, "marketdata.shutdown_timeout") or 5.0,
    )


def _create_massive_manager(properties: Mapping[str, str]) -> MarketDataManager:
    from .massive_client import MassiveQuoteTransport

    api_key = (properties.get("massive.api_key") or "").strip()
    if not api_key:
        raise ValueError("MASSIVE provider requires massive.api_key (MASSIVE_API_KEY)")
    interval = _optional_float(properties, "marketdata.poll_interval")
    transport = MassiveQuoteTransport(api_key=api_key, poll_interval=interval or 15.0)
    return ConsolidatedQuoteManager(
        transport,
        quote_cache=QuoteCache(),
        join_timeout=_optional_float(properties, "marketdata.shutdown_timeout") or 5.0,
    )


def default_registry() -> ProviderRegistry:
    """Registry with the built-in SIMULATOR and MASSIVE providers."""
    registry = ProviderRegistry()
    registry.register("SIMULATOR", _create_simulator_manager)
    registry.register("MASSIVE", _create_massive_manager)
    return registry


def create_market_data_manager(
    settings: FeedSettings | None = None,
    registry: ProviderRegistry | None = None,
) -> MarketDataManager:
    """Create the configured market data manager.

    - MARKETDATA_PROVIDER set -> that provider
    - else MASSIVE_API_KEY set and non-empty -> Massive (real market data)
    - otherwise -> the GBM simulator

    Returns a manager with no subscriptions; polling starts on first subscribe.
    """
    settings = settings if settings is not None else FeedSettings.from_env()
    registry = registry if registry is not None else default_registry()

    properties = settings.to_properties()
    if PROVIDER_PROPERTY not in properties:
        properties[PROVIDER_PROPERTY] = "MASSIVE" if settings.massive_api_key else "SIMULATOR"

    manager = registry.create(properties)
    logger.info("Market data source: %s", manager.provider_name)
    return manager
