"""
Order service - persistence of the order resource.
Handles order numbering, create/update with items, deletion and reads.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from cafe_pos.exceptions import PosError, BusinessLogicError, NotFoundError, PersistenceError
from cafe_pos.models import Order, OrderItem, OrderCounter, OrderStatus, Product, RestaurantTable
from cafe_pos.services.order_payload import OrderPayload
from cafe_pos.services.stock_service import invalidate_sold_quantities
from cafe_pos.utils.number_format import to_decimal, money_str

logger = logging.getLogger(__name__)

ORDER_COUNTER_ID = 'orders'

# Fields a partial update (no items) may touch, keyed by their wire name
UPDATABLE_FIELDS = {
    'tableId': 'table_id',
    'diningOption': 'dining_option',
    'customerName': 'customer_name',
    'customerPhone': 'customer_phone',
    'subtotal': 'subtotal',
    'discount': 'discount',
    'discountType': 'discount_type',
    'total': 'total',
    'dueAmount': 'due_amount',
    'paidAmount': 'paid_amount',
    'status': 'status',
    'paymentStatus': 'payment_status',
    'paymentMethod': 'payment_method',
    'paymentSplits': 'payment_splits',
}
MONEY_FIELDS = {'subtotal', 'discount', 'total', 'due_amount', 'paid_amount'}


def get_next_order_number(session: Session) -> str:
    """Increment the counter row under lock and return the new number."""
    counter = (
        session.query(OrderCounter)
        .filter(OrderCounter.id == ORDER_COUNTER_ID)
        .with_for_update()
        .first()
    )
    if not counter:
        counter = OrderCounter(id=ORDER_COUNTER_ID, counter_value=0)
        session.add(counter)

    counter.counter_value += 1
    session.flush()
    return str(counter.counter_value)


def peek_next_order_number(session: Session) -> str:
    """Number the next order will most likely get; nothing is reserved."""
    counter = session.get(OrderCounter, ORDER_COUNTER_ID)
    return str((counter.counter_value if counter else 0) + 1)


def _validate_references(session: Session, payload: OrderPayload) -> None:
    product_ids = {line.product_id for line in payload.items}
    if product_ids:
        found = {pid for (pid,) in session.query(Product.id).filter(Product.id.in_(product_ids)).all()}
        missing = product_ids - found
        if missing:
            raise NotFoundError(f'Products not found: {", ".join(str(m) for m in sorted(missing))}')

    if payload.table_id is not None and not session.get(RestaurantTable, payload.table_id):
        raise NotFoundError('Table not found.')


def _apply_payload(order: Order, payload: OrderPayload) -> None:
    order.table_id = payload.table_id
    order.dining_option = payload.dining_option
    order.order_source = payload.order_source
    order.subtotal = to_decimal(payload.subtotal)
    order.discount = to_decimal(payload.discount)
    order.discount_type = payload.discount_type
    order.total = to_decimal(payload.total)
    order.status = payload.status.value
    order.payment_method = payload.payment_method
    order.payment_status = payload.payment_status
    order.paid_amount = to_decimal(payload.paid_amount)
    order.due_amount = to_decimal(payload.due_amount) if payload.due_amount is not None else None
    order.payment_splits = payload.payment_splits
    order.customer_name = payload.customer_name
    order.customer_phone = payload.customer_phone
    if payload.created_at:
        order.created_at = payload.created_at
    if payload.is_completed and order.completed_at is None:
        order.completed_at = datetime.now(timezone.utc)

    order.items = [
        OrderItem(
            product_id=line.product_id,
            quantity=line.quantity,
            price=to_decimal(line.price),
            total=to_decimal(line.total),
            item_discount=to_decimal(line.item_discount),
            item_discount_type=line.item_discount_type,
            selected_size=line.selected_size,
        )
        for line in payload.items
    ]


def _occupy_table(session: Session, table_id: Optional[int]) -> None:
    if table_id is None:
        return
    table = session.get(RestaurantTable, table_id)
    if table:
        table.status = 'occupied'


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error while trying to {action}: {e}", exc_info=True)
        raise PersistenceError(f'Failed to {action}. Please try again.')
    invalidate_sold_quantities()


def create_order_with_items(session: Session, payload: OrderPayload) -> Order:
    """Create an order and its items in one transaction; the backend assigns the number."""
    try:
        _validate_references(session, payload)

        order = Order(order_number=get_next_order_number(session))
        _apply_payload(order, payload)
        session.add(order)
        _occupy_table(session, payload.table_id)
        session.flush()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error creating order: {e}", exc_info=True)
        raise PersistenceError('Failed to create order. Please try again.')

    _commit(session, 'create order')
    logger.info(f"Order #{order.order_number} created (id={order.id}, status={order.status}, total={order.total})")
    return order


def update_order_with_items(
    session: Session,
    order_id: int,
    payload: OrderPayload,
    draft_only: bool = False
) -> Order:
    """
    Replace an order's fields and items wholesale.

    With ``draft_only`` the order must still be a draft; a cart bound to a draft
    that was completed elsewhere must not reopen it.
    """
    try:
        order = get_open_draft(session, order_id) if draft_only else get_order(session, order_id)
        _validate_references(session, payload)
        _apply_payload(order, payload)
        _occupy_table(session, payload.table_id)
        session.flush()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Error updating order {order_id}: {e}", exc_info=True)
        raise PersistenceError('Failed to update order. Please try again.')

    _commit(session, 'update order')
    logger.info(f"Order #{order.order_number} updated (id={order.id}, status={order.status}, total={order.total})")
    return order


def update_order_fields(session: Session, order_id: int, updates: Mapping[str, Any]) -> Order:
    """Partial update of scalar order fields (no item changes)."""
    order = get_order(session, order_id)

    for wire_name, value in updates.items():
        attr = UPDATABLE_FIELDS.get(wire_name)
        if attr is None:
            continue
        if attr in MONEY_FIELDS and value is not None:
            value = to_decimal(money_str(value))
        if attr == 'status' and value not in {s.value for s in OrderStatus}:
            raise BusinessLogicError(f'Invalid order status: {value}')
        if attr == 'payment_splits' and isinstance(value, list):
            value = json.dumps(value)
        setattr(order, attr, value)

    if order.status == OrderStatus.COMPLETED.value and order.completed_at is None:
        order.completed_at = datetime.now(timezone.utc)

    _commit(session, 'update order')
    return order


def delete_order(session: Session, order_id: int) -> None:
    order = get_order(session, order_id)
    session.delete(order)
    _commit(session, 'delete order')
    logger.info(f"Order {order_id} deleted")


def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError('Order not found.')
    return order


def get_open_draft(session: Session, order_id: int) -> Order:
    """The order, locked for update, provided it is still a draft."""
    order = session.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFoundError('Draft order not found.')
    if not order.is_draft:
        raise BusinessLogicError(
            f'Order #{order.order_number} is no longer a draft. Start a new order.',
            status_code=409
        )
    return order


def list_orders(session: Session, status: Optional[str] = None) -> List[Order]:
    query = session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def list_drafts(session: Session) -> List[Order]:
    return list_orders(session, OrderStatus.DRAFT.value)


def get_order_items_with_products(session: Session, order_id: int) -> List[OrderItem]:
    get_order(session, order_id)
    return (
        session.query(OrderItem)
        .options(joinedload(OrderItem.product))
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
        .all()
    )


def order_to_dict_with_items(session: Session, order: Order) -> Dict[str, Any]:
    rv = order.to_dict()
    rv['items'] = [
        item.to_dict(include_product=True)
        for item in get_order_items_with_products(session, order.id)
        if item.product is not None
    ]
    return rv
