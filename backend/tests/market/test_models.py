"""Tests for the Quote dataclass."""

import pytest

from feedhub.market.models import Quote


class TestQuote:
    """Unit tests for the Quote model."""

    def test_quote_creation(self):
        """Test basic Quote creation with defaults."""
        quote = Quote(symbol="AAPL", last_price=190.50, timestamp=1234567890.0)
        assert quote.symbol == "AAPL"
        assert quote.last_price == 190.50
        assert quote.bid is None
        assert quote.real_time is False

    def test_spread_and_mid(self):
        """Test spread and mid from bid/ask."""
        quote = Quote(symbol="AAPL", bid=190.00, ask=190.10)
        assert quote.spread == 0.1
        assert quote.mid == 190.05

    def test_spread_missing_side(self):
        """Test that spread and mid are None without both sides."""
        quote = Quote(symbol="AAPL", bid=190.00)
        assert quote.spread is None
        assert quote.mid is None

    @pytest.mark.parametrize(
        ("change", "direction"),
        [(1.25, "up"), (-0.5, "down"), (0.0, "flat"), (None, "flat")],
    )
    def test_direction(self, change, direction):
        """Test direction derived from change."""
        assert Quote(symbol="AAPL", change=change).direction == direction

    def test_immutability(self):
        """Test that Quote is immutable."""
        quote = Quote(symbol="AAPL", last_price=190.50)
        with pytest.raises(AttributeError):
            quote.last_price = 200.00  # type: ignore[misc]

    def test_to_dict(self):
        """Test conversion to dictionary."""
        quote = Quote(symbol="AAPL", last_price=190.50, bid=190.45, ask=190.55, change=0.5, timestamp=1.0)
        data = quote.to_dict()
        assert data["symbol"] == "AAPL"
        assert data["last_price"] == 190.50
        assert data["timestamp"] == 1.0
        assert data["spread"] == 0.1
        assert data["direction"] == "up"
