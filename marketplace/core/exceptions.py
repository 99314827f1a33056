from typing import Any, Dict, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    pass

class OrderValidationError(ValidationError):
    """Raised when an order request is missing or has malformed input."""
    pass


class NotFoundError(BaseServiceError):
    """Base exception for unknown entities."""
    pass

class AccountNotFoundError(NotFoundError):
    """Raised when an account is not found."""

    def __init__(self, account_id: Any, role: Optional[str] = None):
        label = role or "Account"
        super().__init__(f"{label} with ID {account_id} not found", {"account_id": account_id})

class ProductNotFoundError(NotFoundError):
    """Raised when product is not found."""

    def __init__(self, product_id: Any):
        super().__init__(f"Product with ID {product_id} not found", {"product_id": product_id})

class OrderNotFoundError(NotFoundError):
    """Raised when an order is not found."""

    def __init__(self, order_id: Any):
        super().__init__(f"Order with ID {order_id} not found", {"order_id": order_id})

class NoSellerAvailableError(NotFoundError):
    """Raised when no approved seller serves the customer's pin code."""

    def __init__(self, pin_code: str):
        super().__init__(
            f"No seller available in your area (pin code {pin_code})",
            {"pin_code": pin_code},
        )


class BusinessRuleError(BaseServiceError):
    """Base exception for requests that conflict with the current state."""
    pass

class InsufficientStockError(BusinessRuleError):
    """Raised when a reservation exceeds the quantity on hand."""

    def __init__(self, product_id: Any, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            {"product_id": product_id, "requested": requested, "available": available},
        )

class InvalidTransitionError(BusinessRuleError):
    """Raised when a status change is not allowed from the stored status."""

    def __init__(self, order_id: Any, current: str, requested: str):
        super().__init__(
            f"Cannot move order {order_id} from '{current}' to '{requested}'",
            {"order_id": order_id, "current_status": current, "requested_status": requested},
        )

class CannotCancelError(BusinessRuleError):
    """Raised when an order can no longer be cancelled."""

    def __init__(self, order_id: Any, current: str):
        super().__init__(
            f"Cannot cancel order in '{current}' status",
            {"order_id": order_id, "current_status": current},
        )

class OrderConflictError(BusinessRuleError):
    """Raised when concurrent updates keep changing an order under us."""
    pass


class AuthenticationError(BaseServiceError):
    """Raised when a bearer credential is missing, malformed or expired."""
    pass

class AuthorizationError(BaseServiceError):
    """Raised when an authenticated account may not perform an action."""
    pass


class DatabaseError(BaseServiceError):
    """Exception raised for database-related errors."""
    pass
