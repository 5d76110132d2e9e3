"""
Tests for the pure stock rules.
"""

from decimal import Decimal

import pytest

from catalog.exceptions import InsufficientInventory, InvalidAdjustment, InvalidArgument
from catalog.models import BookRecord
from inventory import operations


def book(stock=10, reserved=2, level=5):
    return BookRecord(
        id="book-1",
        title="Stock Rules",
        price=Decimal("20.00"),
        quantity_in_stock=stock,
        reserved_quantity=reserved,
        reorder_level=level,
    )


class TestReserve:
    """Test cases for reserve."""

    def test_reserve_within_available(self):
        """Reserving 5 of 8 available leaves 3 and triggers restock at level 5."""
        updated = operations.reserve(book(), 5)

        assert updated.reserved_quantity == 7
        assert updated.available_quantity() == 3
        assert updated.needs_restock() is True

    def test_reserve_more_than_available(self):
        """Reserving 9 of 8 available fails and reports both numbers."""
        with pytest.raises(InsufficientInventory) as exc_info:
            operations.reserve(book(), 9)

        assert exc_info.value.book_id == "book-1"
        assert exc_info.value.requested == 9
        assert exc_info.value.available == 8

    def test_reserve_exactly_available(self):
        updated = operations.reserve(book(), 8)
        assert updated.available_quantity() == 0
        assert updated.is_available() is False

    def test_reserve_when_oversold(self):
        """A book with more reserved than stocked reports zero available."""
        with pytest.raises(InsufficientInventory) as exc_info:
            operations.reserve(book(stock=3, reserved=5), 1)

        assert exc_info.value.available == 0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_reserve_rejects_non_positive_quantity(self, quantity):
        with pytest.raises(InvalidArgument):
            operations.reserve(book(), quantity)

    def test_reserve_does_not_modify_input(self):
        original = book()
        operations.reserve(original, 3)
        assert original.reserved_quantity == 2

    def test_reserve_then_release_restores_state(self):
        original = book()
        restored = operations.release(operations.reserve(original, 4), 4)

        assert restored.reserved_quantity == original.reserved_quantity
        assert restored.quantity_in_stock == original.quantity_in_stock


class TestRelease:
    """Test cases for release."""

    def test_release_partial(self):
        updated = operations.release(book(reserved=5), 3)
        assert updated.reserved_quantity == 2

    def test_release_more_than_reserved_clamps_to_zero(self):
        updated = operations.release(book(reserved=2), 10)
        assert updated.reserved_quantity == 0

    def test_release_leaves_stock_alone(self):
        updated = operations.release(book(), 1)
        assert updated.quantity_in_stock == 10

    def test_release_rejects_zero(self):
        with pytest.raises(InvalidArgument):
            operations.release(book(), 0)


class TestAdjust:
    """Test cases for adjust."""

    def test_positive_adjustment(self):
        updated = operations.adjust(book(), 15)
        assert updated.quantity_in_stock == 25

    def test_adjust_to_exactly_zero(self):
        updated = operations.adjust(book(stock=10, reserved=0), -10)
        assert updated.quantity_in_stock == 0

    def test_adjust_below_zero(self):
        with pytest.raises(InvalidAdjustment) as exc_info:
            operations.adjust(book(stock=10), -11)

        assert exc_info.value.current_quantity == 10
        assert exc_info.value.adjustment == -11

    def test_adjust_below_reserved_keeps_reservation(self):
        """Stock may drop under the reserved count; available floors at zero."""
        updated = operations.adjust(book(stock=10, reserved=8), -5)

        assert updated.quantity_in_stock == 5
        assert updated.reserved_quantity == 8
        assert updated.available_quantity() == 0

    def test_zero_adjustment_is_allowed(self):
        updated = operations.adjust(book(), 0)
        assert updated.quantity_in_stock == 10


class TestReorderLevel:

    def test_set_reorder_level(self):
        updated = operations.set_reorder_level(book(), 12)

        assert updated.reorder_level == 12
        assert updated.needs_restock() is True

    def test_zero_reorder_level(self):
        assert operations.set_reorder_level(book(), 0).reorder_level == 0

    def test_negative_reorder_level(self):
        with pytest.raises(InvalidArgument):
            operations.set_reorder_level(book(), -1)
