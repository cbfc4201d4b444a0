"""
Pricing derivation for carts.

All arithmetic is exact Decimal. Nothing is rounded here; amounts are rounded
half-up to cents only when they are written to an order (see ``money_str``).

Discount order: each line's own discount first, then the order-level discount on
the already discounted subtotal.
"""
from decimal import Decimal
from typing import Dict, Any, Iterable

from cafe_pos.models import DiscountType
from cafe_pos.services.cart_service import Cart, OrderLineItem
from cafe_pos.utils.number_format import to_decimal, money_str, ZERO

HUNDRED = Decimal('100')


def _percent_of(base: Decimal, percent: Decimal) -> Decimal:
    return base * percent / HUNDRED


def effective_unit_price(item: OrderLineItem) -> Decimal:
    """Size price when the chosen size is on the product's map, else the base price."""
    size_prices = item.product.size_prices or {}
    if item.selected_size and item.selected_size in size_prices:
        return to_decimal(size_prices[item.selected_size])
    return to_decimal(item.product.price)


def line_subtotal(item: OrderLineItem) -> Decimal:
    return effective_unit_price(item) * item.quantity


def item_discount_amount(item: OrderLineItem) -> Decimal:
    """The line's own discount as money (percentages taken of the line subtotal)."""
    discount = to_decimal(item.item_discount)
    if discount <= 0:
        return ZERO
    if item.item_discount_type == DiscountType.PERCENTAGE:
        return _percent_of(line_subtotal(item), discount)
    return discount


def line_total(item: OrderLineItem) -> Decimal:
    return max(ZERO, line_subtotal(item) - item_discount_amount(item))


def cart_subtotal(cart: Cart) -> Decimal:
    """Sum of line totals, item discounts already applied."""
    return sum((line_total(item) for item in cart.items), ZERO)


def original_subtotal(cart: Cart) -> Decimal:
    return sum((line_subtotal(item) for item in cart.items), ZERO)


def total_item_discounts(cart: Cart) -> Decimal:
    return sum((item_discount_amount(item) for item in cart.items), ZERO)


def order_discount_amount(cart: Cart) -> Decimal:
    discount = to_decimal(cart.discount)
    if cart.discount_type == DiscountType.PERCENTAGE:
        return _percent_of(cart_subtotal(cart), discount)
    return discount


def grand_total(cart: Cart) -> Decimal:
    return max(ZERO, cart_subtotal(cart) - order_discount_amount(cart))


def change_due(amount_paid, total) -> Decimal:
    return max(ZERO, to_decimal(amount_paid) - to_decimal(total))


def sum_amounts(amounts: Iterable) -> Decimal:
    return sum((to_decimal(a) for a in amounts), ZERO)


def calculate_cart_totals(cart: Cart) -> Dict[str, Any]:
    """Totals and per-line breakdown of a cart, as strings, for display."""
    lines_details = []
    for item in cart.items:
        lines_details.append({
            'product_id': item.product.id,
            'product_name': item.product.name,
            'unit': item.product.unit,
            'selected_size': item.selected_size,
            'quantity': item.quantity,
            'unit_price': money_str(effective_unit_price(item)),
            'line_subtotal': money_str(line_subtotal(item)),
            'item_discount': str(item.item_discount) if item.item_discount is not None else '0',
            'item_discount_type': item.item_discount_type.value,
            'line_total': money_str(line_total(item)),
        })

    order_discount = order_discount_amount(cart)
    item_discounts = total_item_discounts(cart)

    return {
        'lines': lines_details,
        'original_subtotal': money_str(original_subtotal(cart)),
        'item_discounts': money_str(item_discounts),
        'subtotal': money_str(cart_subtotal(cart)),
        'order_discount': money_str(order_discount),
        'total_discount': money_str(item_discounts + order_discount),
        'total': money_str(grand_total(cart)),
    }
