from .auth import User
from .inventory import Supplier, Product
from .sales import Sale, SaleLine, DailyCounter, PAYMENT_METHODS

__all__ = [
    'User',
    'Supplier', 'Product',
    'Sale', 'SaleLine', 'DailyCounter', 'PAYMENT_METHODS',
]
