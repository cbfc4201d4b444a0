"""
Unit tests for the size selection gate.
"""

import pytest
from decimal import Decimal

from cafe_pos.exceptions import OutOfStockError, SizeRequiredError
from cafe_pos.services.cart_service import Cart
from cafe_pos.services.size_gate_service import PendingProduct, confirm_size, handle_add_to_order


class TestHandleAddToOrder:
    """Tests for the add entry point."""

    def test_sized_product_becomes_pending(self, product_b):
        cart = Cart()
        new_cart, pending = handle_add_to_order(cart, product_b, {})
        assert new_cart is cart
        assert pending.product == product_b
        assert pending.available == Decimal('100')

    def test_sizeless_product_is_added(self, product_a):
        cart, pending = handle_add_to_order(Cart(), product_a, {})
        assert pending is None
        assert cart.items[0].quantity == 1

    def test_out_of_stock_rejected_before_gate(self, product_b):
        with pytest.raises(OutOfStockError):
            handle_add_to_order(Cart(), product_b, {2: 100})


class TestPendingProduct:
    """Tests for size options."""

    def test_options_sorted(self, product_b):
        pending = PendingProduct(product=product_b, available=Decimal('3'))
        options = pending.size_options()
        assert [o.label for o in options] == ['M', 'S']
        assert [o.price for o in options] == [Decimal('3.00'), Decimal('2.00')]
        assert not any(o.disabled for o in options)

    def test_all_disabled_without_stock(self, product_b):
        pending = PendingProduct(product=product_b, available=Decimal('0'))
        assert not pending.can_confirm
        assert all(o.disabled for o in pending.size_options())
        assert pending.to_dict()['canConfirm'] is False


class TestConfirmSize:
    """Tests for confirming or failing the gate."""

    def test_confirm_adds_with_size(self, product_b):
        cart, pending = handle_add_to_order(Cart(), product_b, {})
        cart = confirm_size(cart, pending, 'S', {})
        assert cart.items[0].selected_size == 'S'

    @pytest.mark.parametrize('size', [None, ''])
    def test_no_size_chosen(self, product_b, size):
        cart, pending = handle_add_to_order(Cart(), product_b, {})
        with pytest.raises(SizeRequiredError) as exc:
            confirm_size(cart, pending, size, {})
        assert exc.value.message == 'Please select a size'

    def test_unknown_size(self, product_b):
        cart, pending = handle_add_to_order(Cart(), product_b, {})
        with pytest.raises(SizeRequiredError):
            confirm_size(cart, pending, 'XL', {})

    def test_no_pending_product(self):
        with pytest.raises(SizeRequiredError):
            confirm_size(Cart(), None, 'S', {})

    def test_stock_rechecked_on_confirm(self, product_b):
        cart, pending = handle_add_to_order(Cart(), product_b, {})
        with pytest.raises(OutOfStockError):
            confirm_size(cart, pending, 'S', {2: 100})
