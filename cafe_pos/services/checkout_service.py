"""
Checkout service - turn a cart into a completed order.

Finalizing a cart bound to a draft completes that draft in place; otherwise a
new order is created. On success the cart is always replaced by a fresh one.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.orm import Session

from cafe_pos.exceptions import BusinessLogicError
from cafe_pos.models import Order
from cafe_pos.services import order_service
from cafe_pos.services.cart_service import Cart, new_cart
from cafe_pos.services.order_payload import OrderPayload, PaymentSplit
from cafe_pos.services.receipt_service import build_receipt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    receipt: Dict[str, Any]
    cart: Cart
    change_due: Decimal


def resolve_order_date(order_date: Optional[str], date_type: Optional[str]) -> Optional[datetime]:
    """
    Backdated order date, if any.

    ``month`` takes ``YYYY-MM`` and means the first day of that month (UTC);
    ``date`` takes an ISO date or datetime.
    """
    if not order_date or not date_type:
        return None

    try:
        if date_type == 'month':
            year, month = str(order_date).split('-')[:2]
            return datetime(int(year), int(month), 1, tzinfo=timezone.utc)
        if date_type == 'date':
            parsed = datetime.fromisoformat(str(order_date).replace('Z', '+00:00'))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        raise BusinessLogicError(f'Invalid order date: {order_date}')

    raise BusinessLogicError(f'Invalid date type: {date_type}')


def confirm_payment(
    session: Session,
    cart: Cart,
    payment_method: Optional[str] = None,
    amount_paid=None,
    splits: Sequence[PaymentSplit] = (),
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    order_date: Optional[str] = None,
    date_type: Optional[str] = None,
) -> CheckoutResult:
    """
    Commit the cart as a completed order.

    Raises before touching the database when the cart is empty or the tender
    does not cover the total; persistence errors propagate and the caller keeps
    its cart.
    """
    if cart.is_empty:
        raise BusinessLogicError('Cannot check out an empty order.')

    customer = {
        'customer_name': customer_name,
        'customer_phone': customer_phone,
        'created_at': resolve_order_date(order_date, date_type),
    }
    if splits:
        payload, breakdown = OrderPayload.completed_split(cart, splits, **customer)
    else:
        payload, breakdown = OrderPayload.completed_single(cart, payment_method, amount_paid, **customer)

    if cart.draft_id is not None:
        order = order_service.update_order_with_items(session, cart.draft_id, payload, draft_only=True)
    else:
        order = order_service.create_order_with_items(session, payload)

    logger.info(
        f"Order #{order.order_number} completed (id={order.id}, total={payload.total}, "
        f"method={breakdown.method}, status={breakdown.status.value})"
    )

    receipt = build_receipt(
        cart,
        order_number=order.order_number,
        table_number=order.table.table_number if order.table else None,
        payment_method=None if breakdown.splits else breakdown.method,
        splits=breakdown.splits,
        change_due=breakdown.change_due,
        customer_name=payload.customer_name,
        issued_at=order.created_at,
    )

    fresh = new_cart(
        order_number=order_service.peek_next_order_number(session),
        dining_option=cart.dining_option
    )
    return CheckoutResult(order=order, receipt=receipt, cart=fresh, change_due=breakdown.change_due)
