from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from marketplace.core.enums import OrderStatus, PaymentMethod, PaymentStatus
from .base import BaseSchema, TimestampedSchema


class OrderLineRequest(BaseSchema):
    product_id: int = Field(..., alias="productId")
    quantity: int = Field(..., ge=1)


class PlaceOrderRequest(BaseSchema):
    """Body of POST /orders. The customer and their pin code come from the token, not the body."""
    items: List[OrderLineRequest] = Field(..., min_length=1, alias="products")
    payment_method: PaymentMethod
    prescription_image: Optional[str] = None
    doctor: Optional[str] = None
    upi_id: Optional[str] = None

    @model_validator(mode="after")
    def _upi_requires_id(self):
        if self.payment_method == PaymentMethod.UPI and not self.upi_id:
            raise ValueError("upi_id is required for UPI payments")
        return self


class UpdateStatusRequest(BaseSchema):
    status: OrderStatus
    description: Optional[str] = Field(None, max_length=500)


class OrderItemRead(BaseSchema):
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class TrackingEntryRead(BaseSchema):
    status: OrderStatus
    description: str
    created_at: datetime


class OrderRead(TimestampedSchema):
    id: int
    customer_id: int
    seller_id: int
    items: List[OrderItemRead]
    total_amount: Decimal
    shipping_address: Dict[str, Any]
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    upi_id: Optional[str] = None
    prescription_image: Optional[str] = None
    doctor: Optional[str] = None
    tracking: List[TrackingEntryRead]


class TrackingRead(BaseSchema):
    order_id: int
    status: OrderStatus
    timeline: List[TrackingEntryRead]
