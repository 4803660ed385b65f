"""Coupon management: admin CRUD and redemption history."""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from xenostore.core.clock import utcnow
from xenostore.core.database import get_db
from xenostore.models import Coupon, CouponUsage
from xenostore.schemas import CouponCreate, CouponUpdate
from xenostore.services.coupon import coupon_usage_report, count_usage, is_expired, max_user_usage
from xenostore.services.email_sender import notify_exclusive_coupon

router = APIRouter()
log = logging.getLogger("xenostore.admin")


def _coupon_json(coupon: Coupon, total_used: int) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "discount_type": coupon.discount_type,
        "discount_value": coupon.discount_value,
        "max_discount": coupon.max_discount,
        "valid_for": coupon.valid_for,
        "users": list(coupon.users or []),
        "products": list(coupon.products or []),
        "usage_limit": coupon.usage_limit,
        "usage_per_user": coupon.usage_per_user,
        "is_active": coupon.is_active,
        "expires_at": coupon.expires_at.isoformat() if coupon.expires_at else None,
        "created_at": coupon.created_at.isoformat() if coupon.created_at else None,
        "updated_at": coupon.updated_at.isoformat() if coupon.updated_at else None,
        "is_expired": is_expired(coupon),
        "total_used": total_used,
        "has_reached_limit": total_used >= coupon.usage_limit,
        "remaining_uses": max(0, coupon.usage_limit - total_used),
    }


def _check_scope(valid_for: str, users: list[str], products: list[str]) -> None:
    if valid_for == "user" and not users:
        raise HTTPException(status_code=400, detail="User-specific coupons must have at least one user")
    if valid_for == "product" and not products:
        raise HTTPException(status_code=400, detail="Product-specific coupons must have at least one product")


@router.get("")
@router.get("/")
def coupons_list(db: Session = Depends(get_db)):
    rows = list(db.exec(select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc())).all())
    used = dict(
        db.exec(select(CouponUsage.coupon_id, func.count(CouponUsage.id)).group_by(CouponUsage.coupon_id)).all()
    )
    coupons = [_coupon_json(c, used.get(c.id, 0)) for c in rows]
    return {"success": True, "count": len(coupons), "coupons": coupons}


@router.post("", status_code=201)
@router.post("/", status_code=201, include_in_schema=False)
def coupon_create(
    body: CouponCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    if db.exec(select(Coupon).where(Coupon.code == body.code)).first():
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    _check_scope(body.valid_for, body.users, body.products)
    coupon = Coupon(
        code=body.code,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        max_discount=body.max_discount if body.discount_type == "percentage" else 0,
        valid_for=body.valid_for,
        users=body.users if body.valid_for == "user" else [],
        products=body.products if body.valid_for == "product" else [],
        usage_limit=body.usage_limit,
        usage_per_user=body.usage_per_user,
        expires_at=body.expires_at,
        is_active=body.is_active,
    )
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    db.refresh(coupon)
    log.info("coupon created: code=%s type=%s valid_for=%s", coupon.code, coupon.discount_type, coupon.valid_for)
    data = _coupon_json(coupon, 0)
    if coupon.valid_for == "user" and coupon.users:
        # Runs after the response; mail problems never undo the coupon
        background_tasks.add_task(notify_exclusive_coupon, data, list(coupon.users))
    return {"success": True, "message": "Coupon created successfully", "coupon": data}


@router.get("/{coupon_id:int}")
def coupon_detail(coupon_id: int, db: Session = Depends(get_db)):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return {"success": True, "coupon": _coupon_json(coupon, count_usage(db, coupon.id))}


@router.put("/{coupon_id:int}")
def coupon_update(coupon_id: int, body: CouponUpdate, db: Session = Depends(get_db)):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    data = body.model_dump(exclude_unset=True)
    if data.get("code"):
        existing = db.exec(select(Coupon).where(Coupon.code == data["code"], Coupon.id != coupon_id)).first()
        if existing:
            raise HTTPException(status_code=400, detail="Coupon code already exists")
    elif "code" in data:
        raise HTTPException(status_code=400, detail="Coupon code cannot be empty")

    valid_for = data.get("valid_for") or coupon.valid_for
    users = data["users"] if data.get("users") is not None else list(coupon.users or [])
    products = data["products"] if data.get("products") is not None else list(coupon.products or [])
    _check_scope(valid_for, users, products)
    # Only the list that matches valid_for is kept
    data["users"] = users if valid_for == "user" else []
    data["products"] = products if valid_for == "product" else []

    discount_type = data.get("discount_type") or coupon.discount_type
    discount_value = data["discount_value"] if data.get("discount_value") is not None else coupon.discount_value
    if discount_type == "percentage" and discount_value > 100:
        raise HTTPException(status_code=400, detail="Percentage discount must be between 0 and 100")
    if discount_type == "flat":
        data["max_discount"] = 0

    # Limits can be lowered, but never below redemptions already recorded
    if data.get("usage_limit") is not None:
        used = count_usage(db, coupon.id)
        if data["usage_limit"] < used:
            raise HTTPException(
                status_code=400,
                detail=f"Usage limit cannot be lower than the {used} redemption(s) already recorded",
            )
    if data.get("usage_per_user") is not None:
        most = max_user_usage(db, coupon.id)
        if data["usage_per_user"] < most:
            raise HTTPException(
                status_code=400,
                detail=f"Per-user limit cannot be lower than {most}; a customer has already used this coupon that often",
            )

    for key, value in data.items():
        if value is None and key not in ("users", "products"):
            continue
        setattr(coupon, key, value)
    coupon.updated_at = utcnow()
    # Edits invalidate in-flight record-usage checks too
    coupon.version = (coupon.version or 0) + 1
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Coupon code already exists")
    db.refresh(coupon)
    log.info("coupon updated: id=%s code=%s", coupon.id, coupon.code)
    return {
        "success": True,
        "message": "Coupon updated successfully",
        "coupon": _coupon_json(coupon, count_usage(db, coupon.id)),
    }


@router.delete("/{coupon_id:int}")
def coupon_delete(coupon_id: int, db: Session = Depends(get_db)):
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    code = coupon.code
    # Orders keep their coupon_code string; no cascade into orders
    db.delete(coupon)
    db.commit()
    log.info("coupon deleted: id=%s code=%s", coupon_id, code)
    return {"success": True, "message": "Coupon deleted successfully"}


@router.get("/{coupon_id:int}/usage")
def coupon_usage(coupon_id: int, db: Session = Depends(get_db)):
    report = coupon_usage_report(db, coupon_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return report
