"""Product model."""
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cafe_pos.database import Base, BigIntPK


class Product(Base):
    """
    Catalog product.

    ``size_prices`` maps a size label to an overriding unit price, both stored as
    strings, e.g. ``{"S": "2.50", "M": "3.00", "L": "3.50"}``. A product with a
    non-empty map must be sold with a size chosen.
    """

    __tablename__ = 'product'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    purchase_cost = Column(Numeric(10, 2), nullable=True)
    category_id = Column(BigIntPK, ForeignKey('category.id'), nullable=True)
    unit = Column(String, nullable=False, default='piece', server_default='piece')
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')  # On hand
    barcode = Column(String(255), nullable=True)
    size_prices = Column(JSON().with_variant(JSONB, 'postgresql'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    category = relationship('Category', foreign_keys=[category_id])

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', price={self.price})>"

    @property
    def has_size_prices(self) -> bool:
        return bool(self.size_prices)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': str(self.price),
            'categoryId': self.category_id,
            'unit': self.unit,
            'quantity': str(self.quantity),
            'barcode': self.barcode,
            'sizePrices': dict(self.size_prices) if self.size_prices else None,
        }
