from .inventory import InventoryItem
from .customers import Customer
from .suppliers import Supplier
from .transactions import LedgerTransaction, LedgerTransactionLine

__all__ = [
    'InventoryItem',
    'Customer',
    'Supplier',
    'LedgerTransaction', 'LedgerTransactionLine',
]
