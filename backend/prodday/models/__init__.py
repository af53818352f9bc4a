from .auth import User, SessionToken
from .catalog import Product, ProductHistory
from .production import ProductionEntry, ProductionDaySnapshot, ProductionDayLock
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken',
    'Product', 'ProductHistory',
    'ProductionEntry', 'ProductionDaySnapshot', 'ProductionDayLock',
    'AuditLog',
]
