from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from xenostore.core.config import settings
from xenostore.core.database import get_db
from xenostore.core.rate_limit import CHECKOUT_WRITE_LIMIT, COUPON_VALIDATE_LIMIT, limiter
from xenostore.schemas import RecordUsageRequest, ValidateCouponRequest
from xenostore.services.coupon import record_coupon_usage, validate_coupon

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post("/validate")
@limiter.limit(COUPON_VALIDATE_LIMIT)
def coupon_validate(
    request: Request,
    body: ValidateCouponRequest,
    db: Session = Depends(get_db),
):
    """Checkout: does the coupon apply to this cart, and how much does it take off?"""
    applied = validate_coupon(db, body.code, body.user_id, body.cart_total, body.products)
    coupon = applied.coupon
    if coupon.discount_type == "percentage":
        saved = f"{coupon.discount_value:g}%"
    else:
        saved = f"{settings.currency} {coupon.discount_value:g}"
    return {
        "success": True,
        "message": f'Coupon "{coupon.code}" applied successfully! You saved {saved}',
        "coupon_code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "discount_amount": applied.discount_amount,
        "final_total": applied.final_total,
        "usage_info": {
            "current_usage": applied.total_usage,
            "usage_limit": coupon.usage_limit,
            "user_usage": applied.user_usage,
            "user_limit": coupon.usage_per_user,
            "remaining_uses": coupon.usage_limit - applied.total_usage,
            "user_remaining_uses": coupon.usage_per_user - applied.user_usage,
        },
    }


@router.post("/record-usage")
@limiter.limit(CHECKOUT_WRITE_LIMIT)
def coupon_record_usage(request: Request, body: RecordUsageRequest, db: Session = Depends(get_db)):
    """Checkout: the order went through, count the redemption. Safe to retry with the same order id."""
    recorded = record_coupon_usage(db, body.code, body.user_id, body.order_id, body.discount_amount)
    coupon = recorded.coupon
    return {
        "success": True,
        "message": (
            f'Coupon usage recorded successfully! "{coupon.code}" has been used '
            f"{recorded.total_usage}/{coupon.usage_limit} times."
        ),
        "total_usage": recorded.total_usage,
        "usage_limit": coupon.usage_limit,
        "user_usage": recorded.user_usage,
        "user_limit": coupon.usage_per_user,
        "remaining_uses": coupon.usage_limit - recorded.total_usage,
    }
