from .masters import Course, Product, Customer
from .schedules import DeliveryPattern, TemporaryChange
from .ledger import Invoice, Payment
from .settings import CustomerSetting
from .operations import OperationLog

__all__ = [
    'Course', 'Product', 'Customer',
    'DeliveryPattern', 'TemporaryChange',
    'Invoice', 'Payment',
    'CustomerSetting',
    'OperationLog',
]
