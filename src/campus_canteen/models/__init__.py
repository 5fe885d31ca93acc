from ..db.base import Base
from .user import RoleEnum, User
from .menu_item import MenuItem
from .order import Order, OrderStatusEnum
from .order_item import OrderItem

__all__ = [
    "Base",
    "RoleEnum",
    "User",
    "MenuItem",
    "Order",
    "OrderStatusEnum",
    "OrderItem",
]
