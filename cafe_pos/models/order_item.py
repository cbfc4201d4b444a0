"""Order Item model."""
from sqlalchemy import Column, Integer, Numeric, String, ForeignKey
from sqlalchemy.orm import relationship
from cafe_pos.database import Base, BigIntPK


class OrderItem(Base):
    """
    Order Item - persisted form of a cart line.

    ``price`` is the resolved unit price (size-aware) at save time and ``total`` the
    line total after the line's own discount.
    """

    __tablename__ = 'order_item'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigIntPK, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigIntPK, ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    # Item-level discount (applied to this line only)
    item_discount = Column(Numeric(10, 2), default=0, server_default='0')
    item_discount_type = Column(String(20), default='amount', server_default='amount')
    selected_size = Column(String(50), nullable=True)

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity}, size={self.selected_size})>"

    def to_dict(self, include_product=False):
        rv = {
            'id': self.id,
            'orderId': self.order_id,
            'productId': self.product_id,
            'quantity': self.quantity,
            'price': str(self.price),
            'total': str(self.total),
            'itemDiscount': str(self.item_discount if self.item_discount is not None else '0'),
            'itemDiscountType': self.item_discount_type or 'amount',
            'selectedSize': self.selected_size,
        }
        if include_product and self.product is not None:
            rv['product'] = self.product.to_dict()
            rv['productName'] = self.product.name
        return rv
