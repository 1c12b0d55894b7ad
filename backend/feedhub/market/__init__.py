"""Consolidated quote subscriptions.

Public API:
    Quote                      - Immutable provider-neutral quote
    QuoteCache                 - Thread-safe latest-quote store
    QuoteTransport             - Abstract upstream quote source
    MarketDataManager          - Abstract subscription manager
    ConsolidatedQuoteManager   - One poll per interval shared by all subscribers
    ProviderRegistry           - Explicit provider -> factory lookup
    create_market_data_manager - Factory that selects simulator or Massive
    create_stream_router       - FastAPI router factory for the SSE endpoint
"""

from .cache import QuoteCache
from .factory import ProviderRegistry, create_market_data_manager, default_registry
from .interface import MarketDataManager, QuoteTransport
from .manager import ConsolidatedQuoteManager
from .models import Quote
from .stream import create_stream_router

__all__ = [
    "ConsolidatedQuoteManager",
    "MarketDataManager",
    "ProviderRegistry",
    "Quote",
    "QuoteCache",
    "QuoteTransport",
    "create_market_data_manager",
    "create_stream_router",
    "default_registry",
]
