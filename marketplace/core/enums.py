"""
Shared enums and constants used across the application.
"""

from enum import Enum


class Role(str, Enum):
    """Account roles; stored as the discriminator of the users table"""
    CUSTOMER = "Customer"
    SELLER = "Seller"
    REGIONAL_ADMIN = "RegionalAdmin"
    SUPER_ADMIN = "SuperAdmin"

    @property
    def is_admin(self) -> bool:
        return self in (Role.REGIONAL_ADMIN, Role.SUPER_ADMIN)


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Region(str, Enum):
    """Serviceable regions an account can belong to"""
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    CENTRAL = "central"
    NORTH_EAST = "north_east"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "other"


class OrderStatus(str, Enum):
    """Order lifecycle values"""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not ORDER_TRANSITIONS[self]


# Legal status transitions. Terminal states map to an empty set.
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.DISPATCHED, OrderStatus.CANCELLED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.ACCEPTED})

# Default tracking descriptions per target status
STATUS_DESCRIPTIONS = {
    OrderStatus.PENDING: "Order placed successfully",
    OrderStatus.ACCEPTED: "Order accepted by seller",
    OrderStatus.DISPATCHED: "Order dispatched for delivery",
    OrderStatus.DELIVERED: "Order delivered",
    OrderStatus.REJECTED: "Order rejected by seller",
    OrderStatus.CANCELLED: "Order cancelled",
}


class PaymentMethod(str, Enum):
    COD = "cod"
    UPI = "upi"
    WALLET = "wallet"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class TransactionEventKind(str, Enum):
    """Analytics event kinds, one row per line item per lifecycle moment"""
    ORDER_PLACED = "order_placed"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_DELIVERED = "order_delivered"


class NotificationType(str, Enum):
    APPROVAL_REQUEST = "approval_request"
    SYSTEM = "system"
    ALERT = "alert"
    ORDER = "order"
