from .tenancy import Tenant, User, SessionToken
from .inventory import Category, Product, StockMovement, Supplier, Purchase, PurchaseItem
from .customers import Customer
from .registers import CashRegister
from .sales import Sale, SaleItem
from .expenses import Expense, ExpenseCategory
from .orders import Order, OrderItem, OrderHistory
from .documents import DocumentSequence

__all__ = [
    'Tenant', 'User', 'SessionToken',
    'Category', 'Product', 'StockMovement', 'Supplier', 'Purchase', 'PurchaseItem',
    'Customer',
    'CashRegister',
    'Sale', 'SaleItem',
    'Expense', 'ExpenseCategory',
    'Order', 'OrderItem', 'OrderHistory',
    'DocumentSequence',
]
