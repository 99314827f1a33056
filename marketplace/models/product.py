"""
Catalog models: categories and the products sellers list under them.

``quantity`` is the on-hand stock. It is only ever changed through the
inventory ledger's conditional updates and is guarded by a CHECK constraint.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from marketplace.core.utils import utc_now
from marketplace.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    image_link = Column(String, nullable=True)

    products = relationship("Product", back_populates="category")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_products_discount_range"),
    )

    id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_link = Column(String, nullable=True)

    # Pricing
    price = Column(Numeric(10, 2), nullable=False)
    discount = Column(Integer, nullable=False, default=0)  # percent

    # Stock on hand
    quantity = Column(Integer, nullable=False, default=0)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    category = relationship("Category", back_populates="products")

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} price={self.price} qty={self.quantity}>"
