from .coupon import CouponCreate, CouponUpdate, RecordUsageRequest, ValidateCouponRequest
from .finance import ManualEntryCreate, ManualEntryUpdate
from .order import OrderCreate, OrderItemIn, OrderStatusUpdate

__all__ = [
    "CouponCreate",
    "CouponUpdate",
    "ManualEntryCreate",
    "ManualEntryUpdate",
    "OrderCreate",
    "OrderItemIn",
    "OrderStatusUpdate",
    "RecordUsageRequest",
    "ValidateCouponRequest",
]
