"""Sales reports built from the transaction log."""
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.enums import Role
from marketplace.core.security import Principal, require_roles
from marketplace.core.utils import utc_now
from marketplace.dependencies import get_db
from marketplace.schemas.report import RevenueSummary, TopSellingReport
from marketplace.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/reports", tags=["reports"])

admin_only = require_roles(Role.SUPER_ADMIN, Role.REGIONAL_ADMIN)


@router.get("/top-selling", response_model=TopSellingReport)
async def top_selling(
    year: Optional[int] = Query(None, ge=2000),
    month: Optional[int] = Query(None, ge=1, le=12),
    limit: Optional[int] = Query(None, ge=1, le=100),
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    """Top selling products for a month (defaults to the current month)."""
    return await AnalyticsService(db).top_selling_products(year=year, month=month, limit=limit)


@router.get("/revenue", response_model=RevenueSummary)
async def revenue(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    days: int = Query(30, ge=1, le=366, description="Window length when start is omitted"),
    principal: Principal = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
):
    end = end or utc_now()
    start = start or end - timedelta(days=days)
    return await AnalyticsService(db).revenue_summary(start, end)
