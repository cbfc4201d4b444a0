"""Order model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cafe_pos.database import Base, BigIntPK
import enum


class OrderStatus(str, enum.Enum):
    """Order lifecycle status."""
    DRAFT = 'draft'
    COMPLETED = 'completed'


class PaymentStatus(str, enum.Enum):
    """Payment status of a completed order."""
    PENDING = 'pending'
    PAID = 'paid'
    PARTIAL = 'partial'
    DUE = 'due'


class DiscountType(str, enum.Enum):
    """How a discount value is interpreted."""
    AMOUNT = 'amount'
    PERCENTAGE = 'percentage'


class DiningOption(str, enum.Enum):
    """Where the order is served."""
    DINE_IN = 'dine-in'
    TAKEAWAY = 'takeaway'
    DELIVERY = 'delivery'


def _str_or_none(value):
    return str(value) if value is not None else None


class Order(Base):
    """Order (draft or completed)."""

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String, nullable=False, unique=True)
    table_id = Column(BigIntPK, ForeignKey('restaurant_table.id'), nullable=True)
    dining_option = Column(String(20), nullable=False, default=DiningOption.DINE_IN.value)
    customer_name = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    order_source = Column(String(20), nullable=False, default='pos', server_default='pos')

    subtotal = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    discount_type = Column(String(20), nullable=False, default=DiscountType.AMOUNT.value)
    total = Column(Numeric(10, 2), nullable=False)
    due_amount = Column(Numeric(10, 2), nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')

    status = Column(String(20), nullable=False, default=OrderStatus.DRAFT.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String, nullable=True)
    payment_splits = Column(Text, nullable=True)  # JSON list of {method, amount}

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    table = relationship('RestaurantTable')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', total={self.total})>"

    @property
    def is_draft(self) -> bool:
        return self.status == OrderStatus.DRAFT.value

    def to_dict(self, include_items=False):
        rv = {
            'id': self.id,
            'orderNumber': self.order_number,
            'tableId': self.table_id,
            'diningOption': self.dining_option,
            'customerName': self.customer_name,
            'customerPhone': self.customer_phone,
            'orderSource': self.order_source,
            'subtotal': _str_or_none(self.subtotal),
            'discount': _str_or_none(self.discount),
            'discountType': self.discount_type,
            'total': _str_or_none(self.total),
            'dueAmount': _str_or_none(self.due_amount),
            'paidAmount': _str_or_none(self.paid_amount),
            'status': self.status,
            'paymentStatus': self.payment_status,
            'paymentMethod': self.payment_method,
            'paymentSplits': self.payment_splits,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_items:
            rv['items'] = [item.to_dict(include_product=True) for item in self.items]
        return rv
