"""
Draft service - save a cart as a draft order and rehydrate a cart from one.

Saving into an existing draft updates it in place and keeps the cart open.
Saving a cart that is not bound to a draft creates a new one and closes the cart.
"""
import logging
from dataclasses import dataclass, replace
from typing import List, Mapping, Optional

from sqlalchemy.orm import Session

from cafe_pos.exceptions import BusinessLogicError, DraftResolutionError, NotFoundError
from cafe_pos.models import Order, DiscountType, DiningOption
from cafe_pos.services import order_service
from cafe_pos.services.cart_service import (
    Cart, OrderLineItem, ProductSnapshot, has_size_pricing, new_cart
)
from cafe_pos.services.order_payload import OrderPayload
from cafe_pos.services.stock_service import load_product_snapshots
from cafe_pos.utils.number_format import to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DraftSaveResult:
    order: Order
    cart: Cart
    cart_closed: bool
    created: bool


def save_draft(session: Session, cart: Cart) -> DraftSaveResult:
    """
    Persist the cart as a draft.

    Failures leave the caller's cart untouched; the exception propagates.
    """
    if cart.is_empty:
        raise BusinessLogicError('Cannot save an empty order as a draft.')

    payload = OrderPayload.draft(cart)

    if cart.draft_id is not None:
        order = order_service.update_order_with_items(session, cart.draft_id, payload, draft_only=True)
        logger.info(f"Draft #{order.order_number} updated (id={order.id}, lines={len(payload.items)})")
        kept = replace(cart, order_number=order.order_number, draft_id=order.id)
        return DraftSaveResult(order=order, cart=kept, cart_closed=False, created=False)

    order = order_service.create_order_with_items(session, payload)
    logger.info(f"Draft #{order.order_number} created (id={order.id}, lines={len(payload.items)})")
    fresh = new_cart(
        order_number=order_service.peek_next_order_number(session),
        dining_option=cart.dining_option
    )
    return DraftSaveResult(order=order, cart=fresh, cart_closed=True, created=True)


def rehydrate_cart(
    order: Order,
    fallback_products: Optional[Mapping[int, ProductSnapshot]] = None
) -> Cart:
    """
    Build a cart from a persisted order.

    Each line's product comes from the loaded relationship, else from
    ``fallback_products``. Unresolvable lines are skipped. The persisted unit
    price is ignored: prices are re-derived from the live product and the
    stored size.
    """
    fallback_products = fallback_products or {}

    if not order.items:
        raise DraftResolutionError('This draft order has no items.')

    items: List[OrderLineItem] = []
    for persisted in order.items:
        if persisted.product is not None:
            product = ProductSnapshot.from_model(persisted.product)
        else:
            product = fallback_products.get(persisted.product_id)

        if product is None:
            logger.warning(
                f"Order {order.id}: skipping line {persisted.id}, product {persisted.product_id} not found"
            )
            continue

        discount = to_decimal(persisted.item_discount)
        items.append(OrderLineItem(
            product=product,
            quantity=max(1, int(persisted.quantity or 1)),
            selected_size=persisted.selected_size if has_size_pricing(product) else None,
            item_discount=discount if discount > 0 else None,
            item_discount_type=DiscountType(persisted.item_discount_type or DiscountType.AMOUNT.value),
        ))

    if not items:
        raise DraftResolutionError()

    return Cart(
        items=tuple(items),
        discount=to_decimal(order.discount),
        discount_type=DiscountType(order.discount_type or DiscountType.AMOUNT.value),
        table_id=order.table_id,
        dining_option=DiningOption(order.dining_option or DiningOption.DINE_IN.value),
        order_number=order.order_number,
        draft_id=order.id,
    )


def load_draft(
    session: Session,
    order_id: int,
    fallback_products: Optional[Mapping[int, ProductSnapshot]] = None
) -> Cart:
    """Load a draft order into a new cart, replacing whatever the caller had."""
    order = order_service.get_order(session, order_id)
    if not order.is_draft:
        raise NotFoundError('Draft order not found.')

    if fallback_products is None:
        fallback_products = load_product_snapshots(session, [item.product_id for item in order.items])

    cart = rehydrate_cart(order, fallback_products)
    logger.info(f"Draft #{order.order_number} loaded (id={order.id}, lines={len(cart.items)})")
    return cart


def list_drafts(session: Session) -> List[Order]:
    return order_service.list_drafts(session)


def delete_draft(session: Session, order_id: int) -> None:
    order = order_service.get_order(session, order_id)
    if not order.is_draft:
        raise BusinessLogicError('Only draft orders can be deleted from the POS.')
    order_service.delete_order(session, order_id)
