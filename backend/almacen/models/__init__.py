from .auth import User, SessionToken
from .catalog import Product, Supplier, Client
from .inventory import Movement, MovementKind, Adjustment
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .sales import Sale, SaleItem
from .cash import CashSession, ManualCashMovement
from .documents import DocumentSequence

__all__ = [
    'User', 'SessionToken',
    'Product', 'Supplier', 'Client',
    'Movement', 'MovementKind', 'Adjustment',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Sale', 'SaleItem',
    'CashSession', 'ManualCashMovement',
    'DocumentSequence',
]
