from .catalog import Product
from .inventory import InventoryItem
from .parties import Customer, Supplier
from .sales import Sale, SaleItem
from .purchases import PurchaseInvoice, PurchaseInvoiceItem
from .payments import Payment
from .registers import CashRegisterSession, Expense
from .documents import DocumentSequence, LedgerEvent

__all__ = [
    'Product', 'InventoryItem',
    'Customer', 'Supplier',
    'Sale', 'SaleItem',
    'PurchaseInvoice', 'PurchaseInvoiceItem',
    'Payment',
    'CashRegisterSession', 'Expense',
    'DocumentSequence', 'LedgerEvent',
]
