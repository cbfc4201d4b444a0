"""Order number counter model."""
from sqlalchemy import Column, String, BigInteger
from cafe_pos.database import Base


class OrderCounter(Base):
    """Single-row counter backing human-facing order numbers."""

    __tablename__ = 'order_counter'

    id = Column(String(32), primary_key=True)
    counter_value = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<OrderCounter(id='{self.id}', value={self.counter_value})>"
