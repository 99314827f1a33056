"""
Order models.

An order embeds snapshots taken when it was placed: the line items keep the
unit price and product name of that moment and ``shipping_address`` is a copy
of the customer's address, so later catalog or profile edits never rewrite a
placed order. ``tracking`` is append-only.
"""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from marketplace.core.enums import OrderStatus, PaymentMethod, PaymentStatus
from marketplace.core.utils import utc_now
from marketplace.database import Base
from marketplace.models._types import enum_column_type


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    total_amount = Column(Numeric(12, 2), nullable=False)
    shipping_address = Column(JSON, nullable=False)

    status = Column(enum_column_type(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_method = Column(enum_column_type(PaymentMethod), nullable=False)
    payment_status = Column(enum_column_type(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    upi_id = Column(String, nullable=True)

    prescription_image = Column(String, nullable=True)
    doctor = Column(String, nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    tracking = relationship(
        "OrderTracking",
        back_populates="order",
        lazy="selectin",
        order_by="OrderTracking.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} customer={self.customer_id} seller={self.seller_id} status={self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    product_name = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)  # price captured at order time
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")


class OrderTracking(Base):
    """One entry per accepted status change; rows are never updated or deleted."""
    __tablename__ = "order_tracking"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(enum_column_type(OrderStatus), nullable=False)
    description = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    order = relationship("Order", back_populates="tracking")
