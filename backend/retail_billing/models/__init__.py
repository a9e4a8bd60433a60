from .inventory import Product, InventoryTransaction
from .customers import Customer
from .sales import Sale, SaleItem, Payment
from .auth import User, SessionToken
from .documents import DocumentSequence

__all__ = [
    'Product', 'InventoryTransaction',
    'Customer',
    'Sale', 'SaleItem', 'Payment',
    'User', 'SessionToken',
    'DocumentSequence',
]
