# API v1 Package
from ledgerbook.api.v1 import accounts, inventory, tax, sales, reports

__all__ = [
    'accounts',
    'inventory',
    'tax',
    'sales',
    'reports',
]
