"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema, TimestampedSchema

# Account schemas
from .account import AddressSchema, AccountCreate

# Order schemas
from .order import (
    OrderLineRequest,
    PlaceOrderRequest,
    UpdateStatusRequest,
    OrderItemRead,
    TrackingEntryRead,
    OrderRead,
    TrackingRead,
)

# Report schemas
from .report import ReportPeriod, TopSellingProduct, TopSellingReport, RevenueSummary
