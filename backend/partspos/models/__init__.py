from .auth import User, SessionToken
from .catalog import Category, Product
from .sales import Sale, SaleLine, SaleSequence
from .settings import StoreSettings

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'Sale', 'SaleLine', 'SaleSequence',
    'StoreSettings',
]
