# marketplace/models/transaction.py

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer

from marketplace.core.enums import TransactionEventKind
from marketplace.core.utils import utc_now
from marketplace.database import Base
from marketplace.models._types import enum_column_type


class TransactionEvent(Base):
    """
    Immutable analytics record: one line item's part in an order lifecycle moment.

    Written by the order workflow, read only by the reporting queries.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_timestamp_product", "timestamp", "product_id"),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    event_kind = Column(enum_column_type(TransactionEventKind), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TransactionEvent id={self.id} order={self.order_id} product={self.product_id} "
            f"qty={self.quantity} kind={self.event_kind}>"
        )
