"""
Size selection gate.

A product sold by size cannot go straight into the cart. Adding it parks it as a
pending product, the caller shows the size options and only an explicit choice
adds it. Cancelling simply drops the pending product.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple

from cafe_pos.exceptions import OutOfStockError, SizeRequiredError
from cafe_pos.services.cart_service import (
    Cart, ProductSnapshot, add_product_to_order, available_stock, has_size_pricing
)
from cafe_pos.utils.number_format import to_decimal, money_str


@dataclass(frozen=True)
class SizeOption:
    label: str
    price: Decimal
    disabled: bool = False

    def to_dict(self):
        return {'size': self.label, 'price': money_str(self.price), 'disabled': self.disabled}


@dataclass(frozen=True)
class PendingProduct:
    product: ProductSnapshot
    available: Decimal

    @property
    def can_confirm(self) -> bool:
        return self.available > 0

    def size_options(self) -> List[SizeOption]:
        """Sizes in lexicographic order, all disabled when nothing is available."""
        return [
            SizeOption(
                label=label,
                price=to_decimal(self.product.size_prices.get(label), self.product.price),
                disabled=not self.can_confirm
            )
            for label in self.product.size_labels()
        ]

    def to_dict(self):
        return {
            'productId': self.product.id,
            'productName': self.product.name,
            'available': str(self.available),
            'canConfirm': self.can_confirm,
            'sizes': [option.to_dict() for option in self.size_options()],
        }


def handle_add_to_order(
    cart: Cart,
    product: ProductSnapshot,
    sold_quantities: Mapping[Any, Any]
) -> Tuple[Cart, Optional[PendingProduct]]:
    """
    Entry point of the add button.

    Returns the (possibly) updated cart and, for sized products, the pending
    product awaiting a size choice.
    """
    available = available_stock(product, sold_quantities)
    if available <= 0:
        raise OutOfStockError(product.name)

    if has_size_pricing(product):
        return cart, PendingProduct(product=product, available=available)

    return add_product_to_order(cart, product, sold_quantities), None


def confirm_size(
    cart: Cart,
    pending: Optional[PendingProduct],
    size: Optional[str],
    sold_quantities: Mapping[Any, Any]
) -> Cart:
    """Add the pending product with the chosen size."""
    if pending is None or not size:
        raise SizeRequiredError()

    if size not in pending.product.size_prices:
        raise SizeRequiredError(f'Please select one of: {", ".join(pending.product.size_labels())}')

    return add_product_to_order(cart, pending.product, sold_quantities, size)
