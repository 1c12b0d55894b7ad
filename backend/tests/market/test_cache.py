"""Tests for QuoteCache."""

from feedhub.market.cache import QuoteCache
from feedhub.market.models import Quote


def _quote(symbol: str, price: float) -> Quote:
    return Quote(symbol=symbol, last_price=price)


class TestQuoteCache:
    """Unit tests for the QuoteCache."""

    def test_update_and_get(self):
        """Test storing and reading a quote."""
        cache = QuoteCache()
        quote = _quote("AAPL", 190.50)
        cache.update(quote)
        assert cache.get("AAPL") is quote
        assert cache.get_price("AAPL") == 190.50

    def test_update_replaces(self):
        """Test that a newer quote replaces the old one."""
        cache = QuoteCache()
        cache.update(_quote("AAPL", 190.00))
        cache.update(_quote("AAPL", 191.00))
        assert cache.get_price("AAPL") == 191.00
        assert len(cache) == 1

    def test_update_many_single_version_bump(self):
        """Test that a batch write bumps the version once."""
        cache = QuoteCache()
        v0 = cache.version
        assert cache.update_many([_quote("AAPL", 1.0), _quote("MSFT", 2.0)]) == 2
        assert cache.version == v0 + 1

    def test_update_many_empty(self):
        """Test that an empty batch leaves the version alone."""
        cache = QuoteCache()
        v0 = cache.version
        assert cache.update_many([]) == 0
        assert cache.version == v0

    def test_remove(self):
        """Test removing a symbol from the cache."""
        cache = QuoteCache()
        cache.update(_quote("AAPL", 190.00))
        cache.remove("AAPL")
        assert cache.get("AAPL") is None

    def test_remove_nonexistent(self):
        """Test removing a symbol that doesn't exist."""
        cache = QuoteCache()
        cache.remove("AAPL")  # Should not raise

    def test_get_all(self):
        """Test getting all quotes."""
        cache = QuoteCache()
        cache.update(_quote("AAPL", 190.00))
        cache.update(_quote("GOOGL", 175.00))
        assert set(cache.get_all()) == {"AAPL", "GOOGL"}

    def test_retain(self):
        """Test dropping every symbol not listed."""
        cache = QuoteCache()
        cache.update_many([_quote("AAPL", 1.0), _quote("MSFT", 2.0), _quote("GOOGL", 3.0)])
        cache.retain(["MSFT"])
        assert set(cache.get_all()) == {"MSFT"}

    def test_version_increments(self):
        """Test that version counter increments on writes and clear."""
        cache = QuoteCache()
        v0 = cache.version
        cache.update(_quote("AAPL", 190.00))
        assert cache.version == v0 + 1
        cache.clear()
        assert cache.version == v0 + 2
        assert len(cache) == 0

    def test_get_price_nonexistent(self):
        """Test getting price for a symbol that doesn't exist."""
        assert QuoteCache().get_price("NOPE") is None

    def test_contains(self):
        """Test membership check."""
        cache = QuoteCache()
        cache.update(_quote("AAPL", 190.00))
        assert "AAPL" in cache
        assert "GOOGL" not in cache
