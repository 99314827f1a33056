from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from .base import BaseSchema


class ReportPeriod(BaseSchema):
    month: str
    year: int
    is_current_month: bool


class TopSellingProduct(BaseSchema):
    product_id: int
    name: str
    category_id: Optional[int] = None
    total_quantity: int
    order_count: int
    total_revenue: Decimal


class TopSellingReport(BaseSchema):
    period: ReportPeriod
    products: List[TopSellingProduct]
    total_items: int


class RevenueSummary(BaseSchema):
    start: datetime
    end: datetime
    placed_amount: Decimal
    cancelled_amount: Decimal
    delivered_amount: Decimal
    net_amount: Decimal
    placed_quantity: int
    cancelled_quantity: int
    delivered_quantity: int
