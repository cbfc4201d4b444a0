"""Models package - exports all SQLAlchemy models."""
from cafe_pos.models.category import Category
from cafe_pos.models.product import Product
from cafe_pos.models.restaurant_table import RestaurantTable
from cafe_pos.models.order import Order, OrderStatus, PaymentStatus, DiscountType, DiningOption
from cafe_pos.models.order_item import OrderItem
from cafe_pos.models.order_counter import OrderCounter

__all__ = [
    'Category', 'Product', 'RestaurantTable',
    'Order', 'OrderStatus', 'PaymentStatus', 'DiscountType', 'DiningOption',
    'OrderItem', 'OrderCounter',
]
