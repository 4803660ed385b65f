"""Checkout: turn a cart into an order, redeeming its coupon in the same transaction."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from xenostore.models import Order, OrderItem
from xenostore.schemas import OrderCreate
from xenostore.services.coupon import record_coupon_usage, validate_coupon
from xenostore.services.errors import CouponError, StorageUnavailable
from xenostore.services.profit import apply_order_profit

log = logging.getLogger("xenostore.orders")


def order_json(order: Order, include_profit: bool = False) -> dict:
    data = {
        "id": order.id,
        "user_id": order.user_id,
        "payment_method": order.payment_method,
        "payment_screenshot": order.payment_screenshot,
        "status": order.status,
        "subtotal": order.subtotal,
        "total": order.total,
        "coupon": (
            {
                "code": order.coupon_code,
                "discount_amount": order.coupon_discount,
                "discount_type": order.coupon_discount_type,
            }
            if order.coupon_code
            else None
        ),
        "items": [
            {
                "product_id": i.product_id,
                "title": i.title,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
            }
            for i in order.items
        ],
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }
    if include_profit:
        data["profit_data"] = {
            "total_cost": order.total_cost,
            "total_revenue": order.total_revenue,
            "total_profit": order.total_profit,
            "item_profits": [
                {
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "selling_price": i.unit_price,
                    "cost_price": i.cost_price,
                    "revenue_after_discount": i.revenue_after_discount,
                    "profit": i.profit,
                }
                for i in order.items
            ],
        }
    return data


def create_order(db: Session, body: OrderCreate) -> Order:
    """
    Creates the order and its items. With a coupon the discount is validated against
    the item subtotal, the order is flushed for its id and the redemption is appended
    before a single commit; any coupon rejection leaves nothing behind.
    """
    items = [
        OrderItem(
            product_id=i.product_id,
            title=i.title,
            quantity=i.quantity,
            unit_price=i.unit_price,
            cost_price=i.cost_price,
        )
        for i in body.items
    ]
    subtotal = sum(i.original_revenue for i in items)
    order = Order(
        user_id=body.user_id,
        payment_method=body.payment_method,
        payment_screenshot=body.payment_screenshot,
        subtotal=subtotal,
        total=subtotal,
    )
    try:
        applied = None
        if body.coupon_code and body.coupon_code.strip():
            applied = validate_coupon(
                db,
                body.coupon_code,
                body.user_id,
                subtotal,
                [i.product_id for i in items],
            )
            order.coupon_code = applied.coupon.code
            order.coupon_discount = applied.discount_amount
            order.coupon_discount_type = applied.coupon.discount_type
            order.total = applied.final_total

        order.items = items
        apply_order_profit(order, items)
        db.add(order)
        db.flush()

        if applied is not None:
            record_coupon_usage(
                db,
                applied.coupon.code,
                body.user_id,
                order.id,
                applied.discount_amount,
                commit=False,
            )
        db.commit()
    except (CouponError, StorageUnavailable):
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("order creation failed for user_id=%s: %s", body.user_id, e)
        raise StorageUnavailable("Order could not be saved. Please try again.")
    db.refresh(order)
    log.info(
        "order created: id=%s user_id=%s total=%s coupon=%s",
        order.id,
        order.user_id,
        order.total,
        order.coupon_code or "-",
    )
    return order
