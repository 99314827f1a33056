from .account import Account, Customer, Seller, RegionalAdmin, SuperAdmin, ACCOUNT_CLASSES
from .product import Category, Product
from .order import Order, OrderItem, OrderTracking
from .transaction import TransactionEvent
from .notification import Notification

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'Account',
    'Customer',
    'Seller',
    'RegionalAdmin',
    'SuperAdmin',
    'ACCOUNT_CLASSES',
    'Category',
    'Product',
    'Order',
    'OrderItem',
    'OrderTracking',
    'TransactionEvent',
    'Notification',
]
