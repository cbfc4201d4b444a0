"""Restaurant table model."""
from sqlalchemy import Column, String, Text
from cafe_pos.database import Base, BigIntPK


class RestaurantTable(Base):
    """Dining table an order can be attached to."""

    __tablename__ = 'restaurant_table'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    table_number = Column(String, nullable=False, unique=True)
    capacity = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default='available', server_default='available')

    def __repr__(self):
        return f"<RestaurantTable(id={self.id}, number='{self.table_number}', status='{self.status}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'tableNumber': self.table_number,
            'capacity': self.capacity,
            'status': self.status,
        }
