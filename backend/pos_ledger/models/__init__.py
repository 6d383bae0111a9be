from .inventory import Product, StockMovement, LowStockAlert, ImmutableMovementError
from .sales import Sale, SaleLineItem

__all__ = [
    'Product', 'StockMovement', 'LowStockAlert', 'ImmutableMovementError',
    'Sale', 'SaleLineItem',
]
