"""Stock snapshot service - product snapshots and sold quantities for admission checks."""
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cafe_pos.exceptions import NotFoundError
from cafe_pos.models import Product, Order, OrderItem, OrderStatus
from cafe_pos.services.cache_service import get_cache
from cafe_pos.services.cart_service import ProductSnapshot

logger = logging.getLogger(__name__)

SOLD_QUANTITIES_KEY = 'inventory:sold_quantities'


def _query_sold_quantities(session: Session) -> Dict[int, int]:
    rows = (
        session.query(OrderItem.product_id, func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == OrderStatus.COMPLETED.value)
        .group_by(OrderItem.product_id)
        .all()
    )
    return {int(product_id): int(qty) for product_id, qty in rows}


def get_sold_quantities(session: Session) -> Dict[int, int]:
    """
    Cumulative quantity per product on completed orders.

    Drafts do not count as sold. Served from Redis when available.
    """
    cache = get_cache()
    if cache is None:
        return _query_sold_quantities(session)
    return cache.counts(SOLD_QUANTITIES_KEY, lambda: _query_sold_quantities(session))


def invalidate_sold_quantities() -> None:
    """Drop the cached snapshot after any order mutation."""
    cache = get_cache()
    if cache is not None:
        cache.invalidate(SOLD_QUANTITIES_KEY)


def get_product_or_error(session: Session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found.')
    return product


def load_product_snapshots(session: Session, product_ids: Optional[Iterable[int]] = None) -> Dict[int, ProductSnapshot]:
    """Snapshots keyed by id; all products when ``product_ids`` is None."""
    query = session.query(Product)
    if product_ids is not None:
        ids = list(set(product_ids))
        if not ids:
            return {}
        query = query.filter(Product.id.in_(ids))
    return {p.id: ProductSnapshot.from_model(p) for p in query.all()}
