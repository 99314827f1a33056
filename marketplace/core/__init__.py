"""
Core module exports.
"""
from .enums import (
    Role,
    VerificationStatus,
    Region,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    TransactionEventKind,
    NotificationType,
    ORDER_TRANSITIONS,
)

from .exceptions import (
    BaseServiceError,
    ValidationError,
    OrderValidationError,
    NotFoundError,
    AccountNotFoundError,
    ProductNotFoundError,
    OrderNotFoundError,
    NoSellerAvailableError,
    BusinessRuleError,
    InsufficientStockError,
    InvalidTransitionError,
    CannotCancelError,
    OrderConflictError,
    DatabaseError,
)

from .utils import (
    model_to_schema,
    models_to_schemas,
    to_money,
    utc_now,
)
