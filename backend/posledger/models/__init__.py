from .tenancy import Merchant, Outlet, User
from .inventory import Product, StockLog, STOCK_REASONS
from .shifts import Shift, SHIFT_OPEN, SHIFT_CLOSED
from .sales import Transaction, TransactionItem

__all__ = [
    'Merchant', 'Outlet', 'User',
    'Product', 'StockLog', 'STOCK_REASONS',
    'Shift', 'SHIFT_OPEN', 'SHIFT_CLOSED',
    'Transaction', 'TransactionItem',
]
