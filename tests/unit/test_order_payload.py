"""
Unit tests for order payload construction and payment breakdowns.
"""

import json
import pytest
from decimal import Decimal

from cafe_pos.exceptions import BusinessLogicError
from cafe_pos.models import DiscountType, OrderStatus, PaymentStatus
from cafe_pos.services.cart_service import Cart, OrderLineItem, set_order_discount
from cafe_pos.services.order_payload import (
    OrderPayload, PaymentSplit, single_payment_breakdown, split_payment_breakdown, splits_from_request
)


@pytest.fixture
def cart(product_a, product_b):
    cart = Cart(
        items=(
            OrderLineItem(product=product_a, quantity=2),
            OrderLineItem(
                product=product_b, quantity=1, selected_size='M',
                item_discount=Decimal('10'), item_discount_type=DiscountType.PERCENTAGE
            ),
        ),
        table_id=3,
    )
    return set_order_discount(cart, '5', DiscountType.PERCENTAGE)


class TestDraftPayload:
    """Tests for the draft constructor."""

    def test_draft_fields(self, cart):
        payload = OrderPayload.draft(cart)

        assert payload.status == OrderStatus.DRAFT
        assert payload.subtotal == '12.70'
        assert payload.discount == '5.00'
        assert payload.discount_type == 'percentage'
        assert payload.total == '12.07'
        assert payload.payment_method is None
        assert payload.payment_status == 'pending'

    def test_line_payloads(self, cart):
        lines = [line.to_dict() for line in OrderPayload.draft(cart).items]
        assert lines == [
            {'productId': 1, 'quantity': 2, 'price': '5.00', 'total': '10.00',
             'itemDiscount': '0.00', 'itemDiscountType': 'amount'},
            {'productId': 2, 'quantity': 1, 'price': '3.00', 'total': '2.70',
             'itemDiscount': '10.00', 'itemDiscountType': 'percentage', 'selectedSize': 'M'},
        ]

    def test_to_dict_omits_unset_optional_fields(self, cart):
        body = OrderPayload.draft(cart).to_dict()
        assert body['tableId'] == 3
        assert 'dueAmount' not in body
        assert 'paymentMethod' not in body
        assert 'customerName' not in body


class TestSinglePayment:
    """Tests for a single tender."""

    def test_cash_with_change(self):
        breakdown = single_payment_breakdown(Decimal('12.065'), 'Cash', '20')
        assert breakdown.method == 'cash'
        assert breakdown.status == PaymentStatus.PAID
        assert breakdown.paid_amount == Decimal('12.065')
        assert breakdown.change_due == Decimal('7.935')

    def test_amount_defaults_to_total(self):
        breakdown = single_payment_breakdown(Decimal('9.50'), 'card')
        assert breakdown.change_due == Decimal('0')

    def test_due_defers_everything(self):
        breakdown = single_payment_breakdown(Decimal('9.50'), 'due')
        assert breakdown.status == PaymentStatus.DUE
        assert breakdown.paid_amount == Decimal('0')
        assert breakdown.due_amount == Decimal('9.50')

    def test_underpayment_rejected(self):
        with pytest.raises(BusinessLogicError):
            single_payment_breakdown(Decimal('9.50'), 'cash', '5')

    def test_method_required(self):
        with pytest.raises(BusinessLogicError):
            single_payment_breakdown(Decimal('9.50'), '')


class TestSplitPayment:
    """Tests for split tenders."""

    def test_partial_with_due(self):
        splits = splits_from_request([{'method': 'cash', 'amount': '4'}, {'method': 'due', 'amount': '6'}])
        breakdown = split_payment_breakdown(Decimal('10'), splits)
        assert breakdown.method == 'cash,due'
        assert breakdown.status == PaymentStatus.PARTIAL
        assert breakdown.paid_amount == Decimal('4')
        assert breakdown.due_amount == Decimal('6')

    def test_all_due(self):
        breakdown = split_payment_breakdown(Decimal('10'), [PaymentSplit('due', Decimal('10'))])
        assert breakdown.status == PaymentStatus.DUE

    def test_fully_paid_with_change(self):
        splits = [PaymentSplit('card', Decimal('5')), PaymentSplit('cash', Decimal('10'))]
        breakdown = split_payment_breakdown(Decimal('12'), splits)
        assert breakdown.status == PaymentStatus.PAID
        assert breakdown.paid_amount == Decimal('12')
        assert breakdown.change_due == Decimal('3')

    def test_splits_must_cover_total(self):
        with pytest.raises(BusinessLogicError):
            split_payment_breakdown(Decimal('12'), [PaymentSplit('cash', Decimal('5'))])

    def test_negative_split_rejected(self):
        with pytest.raises(BusinessLogicError):
            splits_from_request([{'method': 'cash', 'amount': '-1'}])


class TestCompletedPayload:
    """Tests for the completed constructors."""

    def test_completed_split_serializes_splits(self, cart):
        splits = [PaymentSplit('cash', Decimal('5')), PaymentSplit('due', Decimal('7.07'))]
        payload, breakdown = OrderPayload.completed_split(cart, splits, customer_name='Ana')

        assert payload.status == OrderStatus.COMPLETED
        assert payload.payment_status == 'partial'
        assert payload.paid_amount == '5.00'
        assert payload.due_amount == '7.07'
        assert json.loads(payload.payment_splits) == [
            {'method': 'cash', 'amount': '5.00'}, {'method': 'due', 'amount': '7.07'}
        ]
        assert payload.to_dict()['customerName'] == 'Ana'

    def test_completed_single_has_no_due_amount(self, cart):
        payload, breakdown = OrderPayload.completed_single(cart, 'cash', '20')
        assert payload.paid_amount == '12.07'
        assert payload.due_amount is None
        assert breakdown.change_due == Decimal('7.935')


class TestFromDict:
    """Tests for REST body validation."""

    def test_valid_body(self):
        payload = OrderPayload.from_dict({
            'subtotal': '10', 'total': '10', 'status': 'completed',
            'createdAt': '2026-03-01T00:00:00Z',
            'items': [{'productId': '4', 'quantity': 2, 'price': '5', 'total': '10', 'selectedSize': 'L'}],
        })
        assert payload.status == OrderStatus.COMPLETED
        assert payload.items[0].product_id == 4
        assert payload.items[0].selected_size == 'L'
        assert payload.created_at.month == 3

    @pytest.mark.parametrize('body', [
        {'subtotal': '1', 'total': '1'},
        {'subtotal': '1', 'total': '1', 'items': [], 'status': 'open'},
        {'subtotal': '1', 'total': '1', 'items': [], 'discountType': 'fixed'},
        {'total': '1', 'items': []},
        {'subtotal': '1', 'total': '1', 'items': [{'productId': 1, 'quantity': 0, 'price': '1', 'total': '1'}]},
    ])
    def test_invalid_bodies(self, body):
        with pytest.raises(BusinessLogicError):
            OrderPayload.from_dict(body)
