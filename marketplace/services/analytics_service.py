"""
Read-side reports over the sales transaction log.

The order workflow only ever appends to ``transactions``; everything here is a
pure aggregation query.
"""

import calendar
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, get_settings
from marketplace.core.enums import TransactionEventKind
from marketplace.core.exceptions import ValidationError
from marketplace.core.utils import as_utc, to_money, utc_now
from marketplace.models.order import OrderItem
from marketplace.models.product import Product
from marketplace.models.transaction import TransactionEvent
from marketplace.schemas.report import ReportPeriod, RevenueSummary, TopSellingProduct, TopSellingReport

logger = logging.getLogger(__name__)


def month_bounds(year: int, month: int):
    """Return the [start, end) UTC datetimes of a calendar month."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month {month}", {"month": month})
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


class AnalyticsService:
    def __init__(self, db: AsyncSession, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    async def top_selling_products(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> TopSellingReport:
        """
        Top products by quantity placed in a calendar month (defaults to the current one).

        Revenue is quantity times the product's current price, matching how
        the catalog reports it.
        """
        now = utc_now()
        year = year or now.year
        month = month or now.month
        limit = limit or self.settings.TOP_SELLING_DEFAULT_LIMIT
        start, end = month_bounds(year, month)

        total_quantity = func.sum(TransactionEvent.quantity).label("total_quantity")
        order_count = func.count(TransactionEvent.id).label("order_count")
        query = (
            select(
                Product.id,
                Product.name,
                Product.category_id,
                Product.price,
                total_quantity,
                order_count,
            )
            .select_from(TransactionEvent)
            .join(Product, Product.id == TransactionEvent.product_id)
            .where(
                TransactionEvent.timestamp >= start,
                TransactionEvent.timestamp < end,
                TransactionEvent.event_kind == TransactionEventKind.ORDER_PLACED,
            )
            .group_by(Product.id, Product.name, Product.category_id, Product.price)
            .order_by(total_quantity.desc(), Product.id.asc())
            .limit(limit)
        )
        result = await self.db.execute(query)

        products = [
            TopSellingProduct(
                product_id=product_id,
                name=name,
                category_id=category_id,
                total_quantity=int(quantity),
                order_count=int(count),
                total_revenue=to_money(to_money(price) * int(quantity)),
            )
            for product_id, name, category_id, price, quantity, count in result.all()
        ]

        logger.debug("Top selling report for %s-%02d: %s product(s)", year, month, len(products))
        return TopSellingReport(
            period=ReportPeriod(
                month=calendar.month_name[month],
                year=year,
                is_current_month=(year == now.year and month == now.month),
            ),
            products=products,
            total_items=len(products),
        )

    async def revenue_summary(self, start: datetime, end: datetime) -> RevenueSummary:
        """
        Amounts and quantities per event kind in ``[start, end)``.

        Amounts use the unit price captured on the order item, so catalog price
        changes do not rewrite history.
        """
        start, end = as_utc(start), as_utc(end)
        if end <= start:
            raise ValidationError("Report end must be after start", {"start": str(start), "end": str(end)})

        amount = func.sum(TransactionEvent.quantity * OrderItem.unit_price)
        query = (
            select(
                TransactionEvent.event_kind,
                func.coalesce(func.sum(TransactionEvent.quantity), 0),
                func.coalesce(amount, 0),
            )
            .select_from(TransactionEvent)
            .join(
                OrderItem,
                and_(
                    OrderItem.order_id == TransactionEvent.order_id,
                    OrderItem.product_id == TransactionEvent.product_id,
                ),
            )
            .where(TransactionEvent.timestamp >= start, TransactionEvent.timestamp < end)
            .group_by(TransactionEvent.event_kind)
        )
        result = await self.db.execute(query)

        quantities = {kind: 0 for kind in TransactionEventKind}
        amounts = {kind: Decimal("0.00") for kind in TransactionEventKind}
        for kind, quantity, total in result.all():
            kind = TransactionEventKind(kind)
            quantities[kind] = int(quantity)
            amounts[kind] = to_money(total)

        placed = amounts[TransactionEventKind.ORDER_PLACED]
        cancelled = amounts[TransactionEventKind.ORDER_CANCELLED]
        return RevenueSummary(
            start=start,
            end=end,
            placed_amount=placed,
            cancelled_amount=cancelled,
            delivered_amount=amounts[TransactionEventKind.ORDER_DELIVERED],
            net_amount=to_money(placed - cancelled),
            placed_quantity=quantities[TransactionEventKind.ORDER_PLACED],
            cancelled_quantity=quantities[TransactionEventKind.ORDER_CANCELLED],
            delivered_quantity=quantities[TransactionEventKind.ORDER_DELIVERED],
        )
