from .coupon import Coupon, CouponUsage
from .finance import ManualEntry
from .order import Order, OrderItem
from .user import User

__all__ = [
    "Coupon",
    "CouponUsage",
    "ManualEntry",
    "Order",
    "OrderItem",
    "User",
]
