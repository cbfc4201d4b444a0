"""
Order payloads - the shape a cart takes when it is written to the order resource.

Three explicit constructors cover every write the POS makes: a draft, a completed
order paid with one method, and a completed order paid with split tenders.
"""
import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from cafe_pos.exceptions import BusinessLogicError
from cafe_pos.models import DiscountType, DiningOption, OrderStatus, PaymentStatus
from cafe_pos.services.cart_service import Cart
from cafe_pos.services import pricing_service
from cafe_pos.utils.number_format import to_decimal, money_str, ZERO

DUE_METHOD = 'due'


@dataclass(frozen=True)
class OrderLinePayload:
    product_id: int
    quantity: int
    price: str
    total: str
    item_discount: str = '0'
    item_discount_type: str = DiscountType.AMOUNT.value
    selected_size: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        rv = {
            'productId': self.product_id,
            'quantity': self.quantity,
            'price': self.price,
            'total': self.total,
            'itemDiscount': self.item_discount,
            'itemDiscountType': self.item_discount_type,
        }
        if self.selected_size:
            rv['selectedSize'] = self.selected_size
        return rv

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OrderLinePayload':
        try:
            product_id = int(data['productId'])
            quantity = int(data['quantity'])
        except (KeyError, TypeError, ValueError):
            raise BusinessLogicError('Each item needs a numeric productId and quantity.')
        if quantity < 1:
            raise BusinessLogicError('Item quantity must be at least 1.')
        if data.get('price') is None or data.get('total') is None:
            raise BusinessLogicError('Each item needs a price and a total.')

        discount_type = data.get('itemDiscountType') or DiscountType.AMOUNT.value
        if discount_type not in {t.value for t in DiscountType}:
            raise BusinessLogicError(f'Invalid item discount type: {discount_type}')

        return cls(
            product_id=product_id,
            quantity=quantity,
            price=money_str(data['price']),
            total=money_str(data['total']),
            item_discount=money_str(data.get('itemDiscount') or '0'),
            item_discount_type=discount_type,
            selected_size=data.get('selectedSize') or None,
        )


def lines_from_cart(cart: Cart) -> Tuple[OrderLinePayload, ...]:
    return tuple(
        OrderLinePayload(
            product_id=item.product.id,
            quantity=item.quantity,
            price=money_str(pricing_service.effective_unit_price(item)),
            total=money_str(pricing_service.line_total(item)),
            item_discount=money_str(item.item_discount or ZERO),
            item_discount_type=item.item_discount_type.value,
            selected_size=item.selected_size,
        )
        for item in cart.items
    )


@dataclass(frozen=True)
class PaymentSplit:
    method: str
    amount: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PaymentSplit':
        method = str(data.get('method') or '').strip().lower()
        if not method:
            raise BusinessLogicError('Each payment split needs a method.')
        amount = to_decimal(data.get('amount'))
        if amount < 0:
            raise BusinessLogicError('Payment amounts cannot be negative.')
        return cls(method=method, amount=amount)

    def to_dict(self) -> Dict[str, Any]:
        return {'method': self.method, 'amount': money_str(self.amount)}


@dataclass(frozen=True)
class PaymentBreakdown:
    method: str
    status: PaymentStatus
    paid_amount: Decimal
    due_amount: Decimal
    tendered: Decimal
    change_due: Decimal
    splits: Tuple[PaymentSplit, ...] = ()


def single_payment_breakdown(total: Decimal, method: str, amount_paid=None) -> PaymentBreakdown:
    """One tender. ``due`` defers the whole total; any other method must cover it."""
    method = (method or '').strip().lower()
    if not method:
        raise BusinessLogicError('A payment method is required.')

    if method == DUE_METHOD:
        return PaymentBreakdown(
            method=method, status=PaymentStatus.DUE,
            paid_amount=ZERO, due_amount=total, tendered=ZERO, change_due=ZERO
        )

    tendered = to_decimal(amount_paid, total) if amount_paid is not None else total
    if tendered < total:
        raise BusinessLogicError(
            f'Amount paid ({money_str(tendered)}) is less than the total ({money_str(total)}).'
        )
    return PaymentBreakdown(
        method=method, status=PaymentStatus.PAID,
        paid_amount=total, due_amount=ZERO, tendered=tendered,
        change_due=pricing_service.change_due(tendered, total)
    )


def split_payment_breakdown(total: Decimal, splits: Sequence[PaymentSplit]) -> PaymentBreakdown:
    """
    Several tenders. A positive ``due`` split leaves that amount owed and makes the
    order ``partial`` (something was paid) or ``due`` (nothing was).
    """
    if not splits:
        raise BusinessLogicError('At least one payment split is required.')

    due_total = pricing_service.sum_amounts(s.amount for s in splits if s.method == DUE_METHOD)
    paid_total = pricing_service.sum_amounts(s.amount for s in splits if s.method != DUE_METHOD)
    tendered = paid_total + due_total

    if tendered < total:
        raise BusinessLogicError(
            f'Payments ({money_str(tendered)}) do not cover the total ({money_str(total)}).'
        )

    method = ','.join(s.method for s in splits)
    change = pricing_service.change_due(tendered, total)

    if due_total > 0:
        status = PaymentStatus.PARTIAL if paid_total > 0 else PaymentStatus.DUE
        return PaymentBreakdown(
            method=method, status=status, paid_amount=paid_total, due_amount=due_total,
            tendered=tendered, change_due=change, splits=tuple(splits)
        )

    return PaymentBreakdown(
        method=method, status=PaymentStatus.PAID, paid_amount=min(paid_total, total),
        due_amount=ZERO, tendered=tendered, change_due=change, splits=tuple(splits)
    )


@dataclass(frozen=True)
class OrderPayload:
    status: OrderStatus
    subtotal: str
    discount: str
    discount_type: str
    total: str
    items: Tuple[OrderLinePayload, ...] = ()
    table_id: Optional[int] = None
    dining_option: str = DiningOption.DINE_IN.value
    order_source: str = 'pos'
    payment_method: Optional[str] = None
    payment_status: str = PaymentStatus.PENDING.value
    paid_amount: str = '0.00'
    due_amount: Optional[str] = None
    payment_splits: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def _cart_fields(cart: Cart) -> Dict[str, Any]:
        # discount is stored raw so "10%" can be redisplayed, not pre-resolved
        return {
            'subtotal': money_str(pricing_service.cart_subtotal(cart)),
            'discount': money_str(cart.discount),
            'discount_type': cart.discount_type.value,
            'total': money_str(pricing_service.grand_total(cart)),
            'items': lines_from_cart(cart),
            'table_id': cart.table_id,
            'dining_option': cart.dining_option.value,
        }

    @classmethod
    def draft(cls, cart: Cart) -> 'OrderPayload':
        return cls(status=OrderStatus.DRAFT, **cls._cart_fields(cart))

    @classmethod
    def _completed(cls, cart: Cart, breakdown: PaymentBreakdown, customer_name=None,
                   customer_phone=None, created_at=None) -> 'OrderPayload':
        return cls(
            status=OrderStatus.COMPLETED,
            payment_method=breakdown.method,
            payment_status=breakdown.status.value,
            paid_amount=money_str(breakdown.paid_amount),
            due_amount=money_str(breakdown.due_amount) if breakdown.due_amount > 0 else None,
            payment_splits=json.dumps([s.to_dict() for s in breakdown.splits]) if breakdown.splits else None,
            customer_name=customer_name or None,
            customer_phone=customer_phone or None,
            created_at=created_at,
            **cls._cart_fields(cart)
        )

    @classmethod
    def completed_single(cls, cart: Cart, method: str, amount_paid=None, **customer) -> Tuple['OrderPayload', PaymentBreakdown]:
        breakdown = single_payment_breakdown(pricing_service.grand_total(cart), method, amount_paid)
        return cls._completed(cart, breakdown, **customer), breakdown

    @classmethod
    def completed_split(cls, cart: Cart, splits: Sequence[PaymentSplit], **customer) -> Tuple['OrderPayload', PaymentBreakdown]:
        breakdown = split_payment_breakdown(pricing_service.grand_total(cart), splits)
        return cls._completed(cart, breakdown, **customer), breakdown

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        rv = {
            'tableId': self.table_id,
            'diningOption': self.dining_option,
            'subtotal': self.subtotal,
            'discount': self.discount,
            'discountType': self.discount_type,
            'total': self.total,
            'status': self.status.value,
            'orderSource': self.order_source,
            'paymentStatus': self.payment_status,
            'paidAmount': self.paid_amount,
            'items': [line.to_dict() for line in self.items],
        }
        optional = {
            'paymentMethod': self.payment_method,
            'dueAmount': self.due_amount,
            'paymentSplits': self.payment_splits,
            'customerName': self.customer_name,
            'customerPhone': self.customer_phone,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
        rv.update({k: v for k, v in optional.items() if v is not None})
        return rv

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OrderPayload':
        """Validate an order body posted to the REST resource."""
        raw_items = data.get('items')
        if not isinstance(raw_items, list):
            raise BusinessLogicError('Invalid order data: items must be a list.')

        status = data.get('status') or OrderStatus.DRAFT.value
        if status not in {s.value for s in OrderStatus}:
            raise BusinessLogicError(f'Invalid order status: {status}')

        discount_type = data.get('discountType') or DiscountType.AMOUNT.value
        if discount_type not in {t.value for t in DiscountType}:
            raise BusinessLogicError(f'Invalid discount type: {discount_type}')

        dining_option = data.get('diningOption') or DiningOption.DINE_IN.value
        if dining_option not in {d.value for d in DiningOption}:
            raise BusinessLogicError(f'Invalid dining option: {dining_option}')

        if data.get('subtotal') is None or data.get('total') is None:
            raise BusinessLogicError('Invalid order data: subtotal and total are required.')

        created_at = data.get('createdAt')
        if created_at:
            try:
                created_at = datetime.fromisoformat(str(created_at).replace('Z', '+00:00'))
            except ValueError:
                raise BusinessLogicError('Invalid createdAt date.')

        due_amount = data.get('dueAmount')
        return cls(
            status=OrderStatus(status),
            subtotal=money_str(data['subtotal']),
            discount=money_str(data.get('discount') or '0'),
            discount_type=discount_type,
            total=money_str(data['total']),
            items=tuple(OrderLinePayload.from_dict(item) for item in raw_items),
            table_id=data.get('tableId'),
            dining_option=dining_option,
            order_source=data.get('orderSource') or 'pos',
            payment_method=data.get('paymentMethod'),
            payment_status=data.get('paymentStatus') or PaymentStatus.PENDING.value,
            paid_amount=money_str(data.get('paidAmount') or '0'),
            due_amount=money_str(due_amount) if due_amount is not None else None,
            payment_splits=data.get('paymentSplits'),
            customer_name=data.get('customerName'),
            customer_phone=data.get('customerPhone'),
            created_at=created_at or None,
        )


def splits_from_request(raw: Optional[List[Mapping[str, Any]]]) -> List[PaymentSplit]:
    return [PaymentSplit.from_dict(s) for s in (raw or [])]
