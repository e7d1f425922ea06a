"""
Unit Tests: CartStore

Tests for services/cart.py covering:
- read-after-write for set_line_quantity / remove_line / clear
- stock ceiling clamping
- consume_lines removing exactly the checked-out products
- per-identity isolation and change subscriptions
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from conftest import make_line
from exceptions import InvalidCartStateException
from models.identity import IdentityDTO


class TestCartReadAfterWrite:

    def test_unknown_identity_has_empty_cart(self, cart_store, buyer):
        cart = cart_store.get_cart(buyer)
        assert cart.is_empty
        assert cart.identity_key == "cart_7"

    def test_set_quantity_with_snapshot_creates_line(self, cart_store, buyer):
        cart_store.set_line_quantity(buyer, "P1", 2, make_line("P1", 1))

        line = cart_store.get_cart(buyer).get_line("P1")
        assert line.quantity == 2
        assert line.unit_price == Decimal("50.00")

    def test_set_quantity_updates_existing_line(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.set_line_quantity(buyer, "P1", 5)

        assert cart_store.get_cart(buyer).get_line("P1").quantity == 5

    def test_set_quantity_zero_removes_line(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2))
        assert cart_store.set_line_quantity(buyer, "P1", 0) is None
        assert cart_store.get_cart(buyer).get_line("P1") is None

    def test_set_quantity_unknown_product_without_snapshot(self, cart_store, buyer):
        with pytest.raises(InvalidCartStateException):
            cart_store.set_line_quantity(buyer, "P9", 1)

    def test_remove_line(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.add_line(buyer, make_line("P2", 1))
        cart_store.remove_line(buyer, "P1")

        cart = cart_store.get_cart(buyer)
        assert [line.product_id for line in cart.lines] == ["P2"]

    def test_clear(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.add_line(buyer, make_line("P2", 1))
        cart_store.clear(buyer)

        assert cart_store.get_cart(buyer).is_empty

    def test_add_line_sums_quantities(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.add_line(buyer, make_line("P1", 3))

        assert cart_store.get_cart(buyer).get_line("P1").quantity == 5

    def test_total_price(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 2, price="50.00"))
        cart_store.add_line(buyer, make_line("P2", 1, price="899.50"))

        assert cart_store.get_cart(buyer).total_price == Decimal("999.50")


class TestStockCeiling:

    def test_quantity_above_ceiling_is_capped(self, cart_store, buyer):
        stored = cart_store.set_line_quantity(buyer, "P1", 12, make_line("P1", 1, stock_ceiling=4))

        assert stored.quantity == 4
        assert cart_store.get_cart(buyer).get_line("P1").quantity == 4

    def test_add_line_capped_at_ceiling(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("P1", 3, stock_ceiling=4))
        cart_store.add_line(buyer, make_line("P1", 3, stock_ceiling=4))

        assert cart_store.get_cart(buyer).get_line("P1").quantity == 4

    def test_no_ceiling_keeps_quantity(self, cart_store, buyer):
        cart_store.set_line_quantity(buyer, "P1", 40, make_line("P1", 1, stock_ceiling=None))
        assert cart_store.get_cart(buyer).get_line("P1").quantity == 40

    def test_out_of_stock_line_is_not_stored(self, cart_store, buyer):
        assert cart_store.add_line(buyer, make_line("P1", 2, stock_ceiling=0)) is None
        assert cart_store.get_cart(buyer).is_empty


class TestConsumeLines:

    def test_consume_removes_only_given_products(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("A", 2))
        cart_store.add_line(buyer, make_line("B", 3))

        removed = cart_store.consume_lines(buyer, ["A"])

        cart = cart_store.get_cart(buyer)
        assert removed == 1
        assert cart.get_line("A") is None
        assert cart.get_line("B").quantity == 3

    def test_consume_missing_lines_is_harmless(self, cart_store, buyer):
        cart_store.add_line(buyer, make_line("A", 2))
        assert cart_store.consume_lines(buyer, ["A", "Z"]) == 1
        assert cart_store.consume_lines(buyer, []) == 0


class TestIdentityIsolation:

    def test_carts_are_scoped_per_identity(self, cart_store, buyer):
        guest = IdentityDTO()
        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.add_line(guest, make_line("P2", 1))

        assert [line.product_id for line in cart_store.get_cart(buyer).lines] == ["P1"]
        assert [line.product_id for line in cart_store.get_cart(guest).lines] == ["P2"]
        assert cart_store.get_cart(guest).identity_key == "cart_guest"

    def test_subscribers_see_every_write(self, cart_store, buyer):
        listener = MagicMock()
        cart_store.subscribe(buyer, listener)

        cart_store.add_line(buyer, make_line("P1", 2))
        cart_store.set_line_quantity(buyer, "P1", 1)

        assert listener.call_count == 2
        assert listener.call_args[0][0].get_line("P1").quantity == 1

    def test_unsubscribe(self, cart_store, buyer):
        listener = MagicMock()
        cart_store.subscribe(buyer, listener)
        cart_store.unsubscribe(buyer, listener)

        cart_store.add_line(buyer, make_line("P1", 2))
        listener.assert_not_called()

    def test_failing_listener_does_not_block_write(self, cart_store, buyer):
        cart_store.subscribe(buyer, MagicMock(side_effect=RuntimeError("view gone")))

        cart_store.add_line(buyer, make_line("P1", 2))
        assert cart_store.get_cart(buyer).get_line("P1").quantity == 2
