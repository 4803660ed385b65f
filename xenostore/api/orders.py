from fastapi import APIRouter, Depends, Request
from sqlmodel import Session, select

from xenostore.core.database import get_db
from xenostore.core.rate_limit import CHECKOUT_WRITE_LIMIT, limiter
from xenostore.models import Order
from xenostore.schemas import OrderCreate
from xenostore.services.orders import create_order, order_json

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=201)
@limiter.limit(CHECKOUT_WRITE_LIMIT)
def order_create(request: Request, body: OrderCreate, db: Session = Depends(get_db)):
    order = create_order(db, body)
    return {"message": "Order created successfully", "order": order_json(order)}


@router.get("/user/{user_id}")
def orders_for_user(user_id: str, db: Session = Depends(get_db)):
    orders = db.exec(
        select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
    ).all()
    return [order_json(o) for o in orders]
