"""Orders in the admin panel: paginated list, status changes, deletion."""
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, func, select

from xenostore.core.database import get_db
from xenostore.models import Order
from xenostore.models.order import ORDER_STATUSES
from xenostore.schemas import OrderStatusUpdate
from xenostore.services.orders import order_json

router = APIRouter()
log = logging.getLogger("xenostore.admin")


@router.get("")
@router.get("/")
def orders_list(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    status: str | None = None,
):
    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if status:
        status = status.strip().lower()
        if status not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status value")
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)
    total = db.exec(count_stmt).one() or 0
    orders = db.exec(
        stmt.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    return {
        "orders": [order_json(o, include_profit=True) for o in orders],
        "total_pages": math.ceil(total / limit),
        "current_page": page,
        "total": total,
    }


@router.patch("/{order_id:int}/status")
def order_status_update(order_id: int, body: OrderStatusUpdate, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    previous = order.status
    order.status = body.status
    db.add(order)
    db.commit()
    db.refresh(order)
    log.info("order %s status %s -> %s", order.id, previous, order.status)
    return {"message": "Order status updated successfully", "order": order_json(order, include_profit=True)}


@router.delete("/{order_id:int}")
def order_delete(order_id: int, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    # Coupon usage rows keep pointing at this id; the usage report shows order=None
    db.delete(order)
    db.commit()
    log.info("order %s deleted", order_id)
    return {"message": "Order deleted successfully"}
