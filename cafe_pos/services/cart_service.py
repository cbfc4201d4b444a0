"""
Cart service - in-memory model of an in-progress POS order.

The cart is an immutable value. Every mutation takes a cart and returns a new one,
or raises a domain exception and leaves the caller's cart as it was. Stock is read
from the sold-quantities snapshot at the moment of each call.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Mapping, Optional, Tuple, Any

from cafe_pos.exceptions import (
    BusinessLogicError, NotFoundError, OutOfStockError, InsufficientStockError, SizeRequiredError
)
from cafe_pos.models import DiscountType, DiningOption
from cafe_pos.utils.number_format import to_decimal, quantize_money, ZERO


@dataclass(frozen=True)
class ProductSnapshot:
    """Read-only copy of the catalog fields the cart needs."""
    id: int
    name: str
    price: Decimal
    quantity: Decimal = ZERO
    unit: str = 'piece'
    size_prices: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_model(cls, product) -> 'ProductSnapshot':
        return cls(
            id=product.id,
            name=product.name,
            price=to_decimal(product.price),
            quantity=to_decimal(product.quantity),
            unit=product.unit or 'piece',
            size_prices={str(k): str(v) for k, v in (product.size_prices or {}).items()},
        )

    def size_labels(self) -> Tuple[str, ...]:
        # No ordering is stored for sizes, sort for a stable presentation
        return tuple(sorted(self.size_prices))


def has_size_pricing(product) -> bool:
    """True when the product is sold by size and a size must be chosen."""
    return bool(getattr(product, 'size_prices', None))


@dataclass(frozen=True)
class LineKey:
    """
    Identity of a cart line.

    Sized products are keyed by (product, size) so two sizes coexist as two lines;
    sizeless products collapse to a single line per product.
    """
    product_id: int
    size: Optional[str] = None

    @classmethod
    def for_product(cls, product, size: Optional[str] = None) -> 'LineKey':
        return cls(product.id, size if has_size_pricing(product) else None)


@dataclass(frozen=True)
class OrderLineItem:
    product: ProductSnapshot
    quantity: int = 1
    selected_size: Optional[str] = None
    item_discount: Optional[Decimal] = None
    item_discount_type: DiscountType = DiscountType.AMOUNT

    @property
    def key(self) -> LineKey:
        return LineKey.for_product(self.product, self.selected_size)


@dataclass(frozen=True)
class Cart:
    items: Tuple[OrderLineItem, ...] = ()
    discount: Decimal = ZERO
    discount_type: DiscountType = DiscountType.AMOUNT
    table_id: Optional[int] = None
    dining_option: DiningOption = DiningOption.DINE_IN
    order_number: str = ''
    draft_id: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, key: LineKey) -> Optional[OrderLineItem]:
        for item in self.items:
            if item.key == key:
                return item
        return None

    def _replace_line(self, key: LineKey, new_item: OrderLineItem) -> 'Cart':
        return replace(self, items=tuple(new_item if item.key == key else item for item in self.items))


# =====================================================
# STOCK ADMISSION
# =====================================================

def available_stock(product, sold_quantities: Mapping[Any, Any]) -> Decimal:
    """On-hand minus already sold, never below zero."""
    sold = to_decimal(sold_quantities.get(product.id, 0))
    return max(ZERO, to_decimal(product.quantity) - sold)


def _ensure_within_stock(product, quantity: int, available: Decimal) -> None:
    if quantity > available:
        raise InsufficientStockError(product.name, available, product.unit)


# =====================================================
# MUTATIONS
# =====================================================

def new_cart(order_number: str = '', dining_option: DiningOption = DiningOption.DINE_IN) -> Cart:
    return Cart(order_number=order_number, dining_option=dining_option)


def add_product_to_order(
    cart: Cart,
    product: ProductSnapshot,
    sold_quantities: Mapping[Any, Any],
    size: Optional[str] = None
) -> Cart:
    """
    Add one unit of a product, or bump the matching line by one.

    Sized products must arrive with a size already chosen (see the size gate).
    """
    available = available_stock(product, sold_quantities)
    if available <= 0:
        raise OutOfStockError(product.name)

    if has_size_pricing(product):
        if not size:
            raise SizeRequiredError()
        if size not in product.size_prices:
            raise BusinessLogicError(f'Size "{size}" is not offered for {product.name}.')
    else:
        size = None

    key = LineKey.for_product(product, size)
    existing = cart.find(key)

    if existing:
        new_quantity = existing.quantity + 1
        _ensure_within_stock(product, new_quantity, available)
        return cart._replace_line(key, replace(existing, product=product, quantity=new_quantity))

    line = OrderLineItem(product=product, quantity=1, selected_size=size)
    return replace(cart, items=cart.items + (line,))


def update_quantity(
    cart: Cart,
    key: LineKey,
    quantity: int,
    sold_quantities: Mapping[Any, Any]
) -> Cart:
    """Set a line's quantity. Anything below 1 is ignored; removal is explicit."""
    if quantity < 1:
        return cart

    existing = cart.find(key)
    if not existing:
        raise NotFoundError('The product is not in the cart.')

    _ensure_within_stock(existing.product, quantity, available_stock(existing.product, sold_quantities))
    return cart._replace_line(key, replace(existing, quantity=int(quantity)))


def remove_item(cart: Cart, key: LineKey) -> Cart:
    return replace(cart, items=tuple(item for item in cart.items if item.key != key))


def _discount_value(discount) -> Decimal:
    """Discounts are held at cents, the precision they are persisted with."""
    value = to_decimal(discount)
    if value < 0:
        raise BusinessLogicError('Discount cannot be negative.')
    return quantize_money(value)


def update_item_discount(
    cart: Cart,
    key: LineKey,
    discount,
    discount_type: DiscountType = DiscountType.AMOUNT
) -> Cart:
    existing = cart.find(key)
    if not existing:
        raise NotFoundError('The product is not in the cart.')

    value = _discount_value(discount)
    return cart._replace_line(key, replace(
        existing,
        item_discount=value if value > 0 else None,
        item_discount_type=DiscountType(discount_type)
    ))


def set_order_discount(cart: Cart, discount, discount_type: DiscountType = DiscountType.AMOUNT) -> Cart:
    return replace(cart, discount=_discount_value(discount), discount_type=DiscountType(discount_type))


def set_table(cart: Cart, table_id: Optional[int]) -> Cart:
    return replace(cart, table_id=table_id)


def set_dining_option(cart: Cart, dining_option) -> Cart:
    return replace(cart, dining_option=DiningOption(dining_option))


def clear_cart(cart: Cart) -> Cart:
    """Drop lines, discount and draft binding; table and dining option stay."""
    return replace(cart, items=(), discount=ZERO, discount_type=DiscountType.AMOUNT, draft_id=None)


# =====================================================
# SESSION SERIALIZATION
# =====================================================

def cart_to_dict(cart: Cart) -> Dict[str, Any]:
    """JSON-safe form for the Flask session (decimals as strings)."""
    return {
        'items': [
            {
                'product_id': item.product.id,
                'quantity': item.quantity,
                'selected_size': item.selected_size,
                'item_discount': str(item.item_discount) if item.item_discount is not None else None,
                'item_discount_type': item.item_discount_type.value,
            }
            for item in cart.items
        ],
        'discount': str(cart.discount),
        'discount_type': cart.discount_type.value,
        'table_id': cart.table_id,
        'dining_option': cart.dining_option.value,
        'order_number': cart.order_number,
        'draft_id': cart.draft_id,
    }


def cart_from_dict(data: Optional[Mapping[str, Any]], products_by_id: Mapping[int, ProductSnapshot]) -> Cart:
    """
    Rebuild a cart from its session form against the current product snapshot.

    Lines whose product no longer exists are dropped.
    """
    if not data:
        return new_cart()

    items = []
    for raw in data.get('items', []):
        product = products_by_id.get(int(raw['product_id']))
        if product is None:
            continue
        discount = raw.get('item_discount')
        items.append(OrderLineItem(
            product=product,
            quantity=int(raw.get('quantity', 1)),
            selected_size=raw.get('selected_size') if has_size_pricing(product) else None,
            item_discount=to_decimal(discount) if discount is not None else None,
            item_discount_type=DiscountType(raw.get('item_discount_type') or DiscountType.AMOUNT.value),
        ))

    return Cart(
        items=tuple(items),
        discount=to_decimal(data.get('discount')),
        discount_type=DiscountType(data.get('discount_type') or DiscountType.AMOUNT.value),
        table_id=data.get('table_id'),
        dining_option=DiningOption(data.get('dining_option') or DiningOption.DINE_IN.value),
        order_number=data.get('order_number') or '',
        draft_id=data.get('draft_id'),
    )


def product_ids_in(data: Optional[Mapping[str, Any]]) -> Tuple[int, ...]:
    if not data:
        return ()
    return tuple(int(raw['product_id']) for raw in data.get('items', []))
