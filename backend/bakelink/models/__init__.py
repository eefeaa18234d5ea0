from .auth import User, SessionToken
from .catalog import ProductCategory, Product
from .schedules import Schedule, ScheduleItem
from .orders import Order, OrderItem

__all__ = [
    'User', 'SessionToken',
    'ProductCategory', 'Product',
    'Schedule', 'ScheduleItem',
    'Order', 'OrderItem',
]
