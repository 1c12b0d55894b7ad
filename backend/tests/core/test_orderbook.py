"""Tests for BinaryOrderBook."""

import pytest

from feedhub.core.orderbook import BinaryOrderBook, PriceLevel, Side


@pytest.fixture
def book():
    book = BinaryOrderBook()
    book.apply_snapshot(yes_levels=[[55, 100], [54, 50]], no_levels=[[44, 200]])
    return book


class TestSide:
    """Tests for Side parsing."""

    @pytest.mark.parametrize("value", ["yes", "YES", " Yes ", True, Side.YES])
    def test_parse_yes(self, value):
        assert Side.parse(value) is Side.YES

    @pytest.mark.parametrize("value", ["no", "NO", False, Side.NO])
    def test_parse_no(self, value):
        assert Side.parse(value) is Side.NO

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            Side.parse("maybe")

    def test_opposite(self):
        assert Side.YES.opposite is Side.NO
        assert Side.NO.opposite is Side.YES


class TestBinaryOrderBook:
    """Unit tests for snapshot/delta maintenance and derived asks."""

    def test_snapshot_best_prices(self, book):
        """Test the best bid, derived ask and spread after a snapshot."""
        assert book.best_bid(Side.YES) == 55
        assert book.best_bid(Side.NO) == 44
        assert book.best_ask(Side.YES) == 56
        assert book.best_ask(Side.NO) == 45
        assert book.spread(Side.YES) == 1

    def test_delta_removes_level(self, book):
        """Test that a delta taking a level to zero removes it."""
        assert book.apply_delta(Side.YES, 55, -100) == 0
        assert book.best_bid(Side.YES) == 54
        assert book.quantity_at(Side.YES, 55) == 0
        assert book.level_count(Side.YES) == 1

    def test_delta_adds_level(self, book):
        """Test that a positive delta at a new price creates a level."""
        assert book.apply_delta("yes", 56, 10) == 10
        assert book.best_bid(Side.YES) == 56

    def test_delta_below_zero_never_negative(self, book):
        """Test that over-removal clamps to an absent level."""
        assert book.apply_delta(Side.NO, 44, -500) == 0
        assert book.best_bid(Side.NO) is None
        assert book.best_ask(Side.YES) is None
        assert book.spread(Side.YES) is None

    def test_delta_increase(self, book):
        """Test that deltas accumulate at an existing price."""
        assert book.apply_delta(Side.YES, 54, 25) == 75
        assert book.depth(Side.YES) == 175

    def test_snapshot_drops_non_positive(self):
        """Test that zero and negative quantities in a snapshot are ignored."""
        book = BinaryOrderBook()
        book.apply_snapshot([[60, 0], [59, -3], [58, 10]], None)
        assert book.bids(Side.YES) == [PriceLevel(58, 10)]
        assert book.bids(Side.NO) == []

    def test_snapshot_replaces(self, book):
        """Test that a second snapshot replaces the first completely."""
        book.apply_snapshot([PriceLevel(40, 5)], [])
        assert book.bids(Side.YES) == [PriceLevel(40, 5)]
        assert book.best_bid(Side.NO) is None

    def test_bids_sorted_descending(self, book):
        """Test that bids list best first and honor the limit."""
        assert book.bids(Side.YES) == [PriceLevel(55, 100), PriceLevel(54, 50)]
        assert book.bids(Side.YES, limit=1) == [PriceLevel(55, 100)]

    def test_asks_derived_from_opposite(self, book):
        """Test that asks are the complement of the opposite side's bids."""
        assert book.asks(Side.NO) == [PriceLevel(45, 100), PriceLevel(46, 50)]
        assert book.asks(Side.YES) == [PriceLevel(56, 200)]

    def test_complement_invariant(self, book):
        """Test that bid on one side plus ask on the other equals full value."""
        assert book.best_bid(Side.YES) + book.best_ask(Side.NO) == 100
        assert book.best_bid(Side.NO) + book.best_ask(Side.YES) == 100

    def test_empty_book(self):
        """Test queries on a book that never received data."""
        book = BinaryOrderBook()
        assert not book.has_book
        assert book.last_update is None
        assert book.best_bid(Side.YES) is None
        assert book.best_ask(Side.YES) is None
        assert book.depth(Side.NO) == 0

    def test_updates_stamp_time(self, book):
        """Test that updates record a timestamp and clear resets it."""
        assert book.has_book
        assert book.last_update is not None
        book.clear()
        assert not book.has_book
        assert book.level_count(Side.YES) == 0

    def test_to_dict(self, book):
        """Test serialization of both ladders."""
        data = book.to_dict()
        assert data["yes"] == [[55, 100], [54, 50]]
        assert data["no"] == [[44, 200]]

    def test_price_level_str(self):
        assert str(PriceLevel(55, 100)) == "55c x 100"
