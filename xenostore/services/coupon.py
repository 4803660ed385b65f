"""Coupon engine: checkout validation, discount calculation and redemption recording."""
import logging
from datetime import datetime
from typing import Iterable, NamedTuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from xenostore.core.clock import as_utc, utcnow
from xenostore.core.config import settings
from xenostore.models import Coupon, CouponUsage, Order
from xenostore.services.errors import (
    CouponExpired,
    CouponInactive,
    CouponNotFound,
    DuplicateUsage,
    InvalidCode,
    ProductNotEligible,
    StorageUnavailable,
    TotalLimitExceeded,
    UsageConflict,
    UsageLimitReached,
    UserLimitExceeded,
    UserLimitReached,
    UserNotEligible,
)

log = logging.getLogger("xenostore.coupon")


class AppliedDiscount(NamedTuple):
    coupon: Coupon
    discount_amount: float
    final_total: float
    total_usage: int
    user_usage: int


class RecordedUsage(NamedTuple):
    coupon: Coupon
    total_usage: int
    user_usage: int


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_coupon_by_code(db: Session, code: str | None, *, for_update: bool = False) -> Coupon | None:
    code_upper = normalize_code(code)
    if not code_upper:
        return None
    stmt = select(Coupon).where(Coupon.code == code_upper)
    if for_update:
        # Row lock where the backend has one (PostgreSQL); fresh attributes either way
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.exec(stmt).first()


def count_usage(db: Session, coupon_id: int, user_id: str | None = None) -> int:
    """Redemptions of a coupon, optionally only those of one user."""
    stmt = select(func.count(CouponUsage.id)).where(CouponUsage.coupon_id == coupon_id)
    if user_id is not None:
        stmt = stmt.where(CouponUsage.user_id == user_id)
    return db.exec(stmt).one() or 0


def max_user_usage(db: Session, coupon_id: int) -> int:
    """Highest number of redemptions any single user has on this coupon."""
    per_user = func.count(CouponUsage.id)
    stmt = (
        select(per_user)
        .where(CouponUsage.coupon_id == coupon_id)
        .group_by(CouponUsage.user_id)
        .order_by(per_user.desc())
        .limit(1)
    )
    return db.exec(stmt).first() or 0


def is_expired(coupon: Coupon, now: datetime | None = None) -> bool:
    return as_utc(now or utcnow()) > as_utc(coupon.expires_at)


def can_be_applied_to(coupon: Coupon, product_id) -> bool:
    """All-user and user-scoped coupons apply to any product; product coupons only to their list."""
    if coupon.valid_for in ("all", "user"):
        return True
    allowed = {str(p) for p in (coupon.products or [])}
    return str(product_id) in allowed


def calculate_discount(coupon: Coupon, cart_total: float) -> float:
    if coupon.discount_type == "flat":
        return min(coupon.discount_value, cart_total)
    discount = cart_total * coupon.discount_value / 100
    # max_discount only caps percentage coupons
    if coupon.max_discount and coupon.max_discount > 0:
        return min(discount, coupon.max_discount)
    return discount


def format_expiry(value: datetime) -> str:
    return value.strftime("%B %d, %Y %H:%M")


def validate_coupon(
    db: Session,
    code: str,
    user_id: str,
    cart_total: float,
    cart_products: Iterable | None = None,
    *,
    now: datetime | None = None,
) -> AppliedDiscount:
    """
    Checks a coupon against the cart and returns the discount.
    Checks run in a fixed order and the first failure is raised as a CouponError.
    Nothing is written; the redemption is recorded later by record_coupon_usage.
    """
    coupon = get_coupon_by_code(db, code)
    if not coupon:
        raise InvalidCode("Invalid coupon code. Please check your coupon code and try again.")

    if not coupon.is_active:
        raise CouponInactive("This coupon has been deactivated by the store. Please contact support for assistance.")

    if is_expired(coupon, now):
        raise CouponExpired(
            f"This coupon expired on {format_expiry(coupon.expires_at)}. Please check our website for current offers!",
            expiry_date=coupon.expires_at.isoformat(),
        )

    total_usage = count_usage(db, coupon.id)
    if total_usage >= coupon.usage_limit:
        raise UsageLimitReached(
            f"This coupon has reached its maximum usage limit ({coupon.usage_limit} uses).",
            usage_info={"current_usage": total_usage, "usage_limit": coupon.usage_limit},
        )

    if coupon.valid_for == "user" and user_id not in (coupon.users or []):
        raise UserNotEligible("This is an exclusive coupon that's not available for your account.")

    user_usage = count_usage(db, coupon.id, user_id)
    if user_usage >= coupon.usage_per_user:
        if coupon.usage_per_user == 1:
            message = "You have already used this coupon once. This is a one-time use coupon per customer."
        else:
            message = (
                f"You have already used this coupon {user_usage} time(s). "
                f"Maximum allowed uses per customer: {coupon.usage_per_user}"
            )
        raise UserLimitReached(
            message,
            user_usage_info={"times_used": user_usage, "allowed_uses": coupon.usage_per_user},
        )

    products = list(cart_products or [])
    if coupon.valid_for == "product" and products:
        if not any(can_be_applied_to(coupon, p) for p in products):
            raise ProductNotEligible(
                "This coupon is only valid for specific products that are not currently in your cart."
            )

    discount_amount = calculate_discount(coupon, cart_total)
    return AppliedDiscount(
        coupon=coupon,
        discount_amount=discount_amount,
        final_total=cart_total - discount_amount,
        total_usage=total_usage,
        user_usage=user_usage,
    )


def _check_usage_caps(db: Session, coupon: Coupon, user_id: str, order_id: str) -> tuple[int, int]:
    """Re-validation at commit time. Returns (total_usage, user_usage)."""
    already = db.exec(
        select(CouponUsage.id).where(CouponUsage.coupon_id == coupon.id, CouponUsage.order_id == order_id)
    ).first()
    # Duplicate first: a retried request for the same order must learn it was already counted
    if already is not None:
        raise DuplicateUsage("This coupon has already been applied to this order.")

    user_usage = count_usage(db, coupon.id, user_id)
    if user_usage >= coupon.usage_per_user:
        raise UserLimitExceeded(
            f"Recording failed: user has already used this coupon {user_usage} time(s). "
            f"Maximum allowed: {coupon.usage_per_user}"
        )

    total_usage = count_usage(db, coupon.id)
    if total_usage >= coupon.usage_limit:
        raise TotalLimitExceeded(
            f"Recording failed: coupon has reached its maximum usage limit ({coupon.usage_limit} uses)."
        )
    return total_usage, user_usage


def _claim(db: Session, coupon_id: int, seen_version: int) -> bool:
    """UPDATE ... WHERE version = seen. False means another writer changed the coupon first."""
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id, Coupon.version == seen_version)
        .values(version=Coupon.version + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.exec(stmt)
    return result.rowcount == 1


def record_coupon_usage(
    db: Session,
    code: str,
    user_id: str,
    order_id,
    discount_amount: float,
    *,
    now: datetime | None = None,
    commit: bool = True,
) -> RecordedUsage:
    """
    Appends a redemption to the coupon's log after re-checking the caps.
    The check and the append are tied together by the coupon version: the row is
    inserted only if nobody redeemed or edited the coupon since it was read.
    With commit=False the caller owns the transaction (order creation).
    """
    order_id = str(order_id)
    try:
        coupon = get_coupon_by_code(db, code, for_update=True)
        if not coupon:
            raise CouponNotFound("Coupon not found during usage recording.")

        attempts = settings.coupon_usage_max_attempts
        for attempt in range(1, attempts + 1):
            seen_version = coupon.version
            total_usage, user_usage = _check_usage_caps(db, coupon, user_id, order_id)
            if _claim(db, coupon.id, seen_version):
                break
            log.info(
                "coupon %s changed during record-usage (attempt %d/%d), re-checking",
                coupon.code,
                attempt,
                attempts,
            )
            db.refresh(coupon)
        else:
            raise UsageConflict("Coupon is being redeemed by other orders right now. Please retry.")

        db.add(
            CouponUsage(
                coupon_id=coupon.id,
                user_id=user_id,
                order_id=order_id,
                date=as_utc(now or utcnow()),
                discount_amount=discount_amount,
            )
        )
        db.flush()
        if commit:
            db.commit()
            db.refresh(coupon)
    except IntegrityError:
        # Unique (coupon_id, order_id) caught a duplicate the pre-check could not see
        db.rollback()
        raise DuplicateUsage("This coupon has already been applied to this order.")
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("record-usage storage failure: code=%s order_id=%s: %s", code, order_id, e)
        raise StorageUnavailable()

    log.info(
        "coupon %s redeemed: user_id=%s order_id=%s usage=%d/%d",
        coupon.code,
        user_id,
        order_id,
        total_usage + 1,
        coupon.usage_limit,
    )
    return RecordedUsage(coupon=coupon, total_usage=total_usage + 1, user_usage=user_usage + 1)


def _order_summary(db: Session, order_id: str) -> dict | None:
    try:
        order = db.get(Order, int(order_id))
    except ValueError:
        return None
    if not order:
        return None
    return {
        "id": order.id,
        "total": order.total,
        "status": order.status,
        "payment_method": order.payment_method,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


def coupon_usage_report(db: Session, coupon_id: int) -> dict | None:
    """Admin: redemption log of one coupon with a summary of each order (None if it was deleted)."""
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        return None
    usages = list(
        db.exec(select(CouponUsage).where(CouponUsage.coupon_id == coupon.id).order_by(CouponUsage.id)).all()
    )
    details = [
        {
            "user_id": u.user_id,
            "order_id": u.order_id,
            "date": u.date.isoformat() if u.date else None,
            "discount_amount": u.discount_amount,
            "order": _order_summary(db, u.order_id),
        }
        for u in usages
    ]
    return {
        "success": True,
        "coupon_code": coupon.code,
        "total_used": len(usages),
        "usage_limit": coupon.usage_limit,
        "remaining_uses": coupon.usage_limit - len(usages),
        "usage_details": details,
    }
