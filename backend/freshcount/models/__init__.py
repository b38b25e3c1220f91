from .auth import User, USER_ROLES
from .inventory import Category, Product, StockMovement, UNIT_TYPES, MOVEMENT_TYPES

__all__ = [
    'User', 'USER_ROLES',
    'Category', 'Product', 'StockMovement',
    'UNIT_TYPES', 'MOVEMENT_TYPES',
]
