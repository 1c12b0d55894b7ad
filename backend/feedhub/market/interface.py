"""Abstract interfaces for quote transports and market data managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Collection

from .models import Quote

# Receives the authorization URL, returns the verification code the user
# obtained from it.
AuthorizationHandler = Callable[[str], str]
QuoteListener = Callable[[list[Quote]], None]
ErrorListener = Callable[[BaseException], None]


class QuoteTransport(ABC):
    """Upstream source of quotes. Knows nothing about subscribers.

    ``fetch`` is synchronous and may block on network I/O. Failures are
    raised, not swallowed: the caller decides whether they are fatal.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Upper-case provider identifier, e.g. "SIMULATOR"."""

    @abstractmethod
    def fetch(self, symbols: Collection[str]) -> dict[str, Quote]:
        """Fetch current quotes for ``symbols`` in one upstream call.

        Returns a mapping keyed by upper-case symbol. Symbols the upstream
        did not return are simply absent.
        """

    @property
    def poll_interval(self) -> float:
        """Recommended seconds between polls for this provider."""
        return 5.0

    @property
    def requires_authentication(self) -> bool:
        return False

    def is_authenticated(self) -> bool:
        return not self.requires_authentication

    def authenticate(self, handler: AuthorizationHandler) -> None:
        """Run the provider's authorization handshake. No-op by default."""

    def close(self) -> None:
        """Release client resources. Safe to call more than once."""


class MarketDataManager(ABC):
    """Provider-neutral contract for consolidated quote subscriptions.

    Lifecycle:
        manager = create_market_data_manager()
        if manager.requires_authentication and not manager.is_authenticated():
            manager.authenticate(prompt_user_for_code)
        sub_id = manager.subscribe(["AAPL", "MSFT"], on_quotes, on_error)
        # ... quotes arrive on the poll thread ...
        manager.unsubscribe(sub_id)
        manager.shutdown()
    """

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def requires_authentication(self) -> bool: ...

    @abstractmethod
    def is_authenticated(self) -> bool: ...

    @abstractmethod
    def authenticate(self, handler: AuthorizationHandler) -> None: ...

    @abstractmethod
    def subscribe(
        self,
        symbols: Collection[str],
        listener: QuoteListener,
        error_listener: ErrorListener | None = None,
    ) -> str:
        """Subscribe to periodic quotes. Returns an opaque subscription id."""

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Cancel a subscription. Returns False if the id is unknown."""

    @abstractmethod
    def unsubscribe_all(self) -> None: ...

    @property
    @abstractmethod
    def active_subscription_count(self) -> int: ...

    @abstractmethod
    def active_subscription_ids(self) -> set[str]: ...

    @abstractmethod
    def get_quotes(self, symbols: Collection[str]) -> list[Quote]:
        """One-shot synchronous fetch. Upstream failures propagate."""

    @property
    @abstractmethod
    def poll_interval(self) -> float: ...

    @property
    @abstractmethod
    def is_running(self) -> bool: ...

    @abstractmethod
    def shutdown(self) -> None: ...
