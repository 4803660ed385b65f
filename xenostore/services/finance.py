"""Finance report: order profit, manual income/expenses, best products by profit."""
import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete
from sqlmodel import Session, func, select

from xenostore.core.clock import as_utc, utcnow
from xenostore.models import ManualEntry, Order, OrderItem
from xenostore.models.order import FULFILLED_STATUSES
from xenostore.services.profit import apply_order_profit

log = logging.getLogger("xenostore.finance")

TIMEFRAMES = ("all", "today", "week", "month", "custom")
TOP_PRODUCTS_LIMIT = 10


def _day_start(d: date) -> datetime:
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def _next_month(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def date_range(
    timeframe: str,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime] | None:
    """[start, end) for the timeframe; None means no date filter."""
    now = as_utc(now or utcnow())
    today = now.date()
    if timeframe == "today":
        return _day_start(today), _day_start(today + timedelta(days=1))
    if timeframe == "week":
        # Week starts on Sunday
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        return _day_start(week_start), now
    if timeframe == "month":
        first = today.replace(day=1)
        return _day_start(first), _day_start(_next_month(first))
    if timeframe == "custom" and start_date and end_date:
        # end_date is inclusive
        return _day_start(start_date), _day_start(end_date + timedelta(days=1))
    return None


def financial_stats(
    db: Session,
    timeframe: str = "all",
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> dict:
    window = date_range(timeframe, start_date, end_date, now)

    def in_window(stmt, column):
        if window is None:
            return stmt
        return stmt.where(column >= window[0]).where(column < window[1])

    fulfilled = in_window(
        select(
            func.coalesce(func.sum(Order.total_revenue), 0),
            func.coalesce(func.sum(Order.total_cost), 0),
            func.coalesce(func.sum(Order.total_profit), 0),
            func.count(Order.id),
        ).where(Order.status.in_(FULFILLED_STATUSES)),
        Order.created_at,
    )
    total_revenue, total_cost, total_profit, order_count = db.exec(fulfilled).one()
    total_orders = db.exec(in_window(select(func.count(Order.id)), Order.created_at)).one() or 0

    missing = db.exec(
        in_window(
            select(func.count(Order.id))
            .where(Order.status.in_(FULFILLED_STATUSES))
            .where(Order.total_profit.is_(None)),
            Order.created_at,
        )
    ).one()
    if missing:
        log.warning("finance stats: %d fulfilled orders have no profit data (run recalculate-profits)", missing)

    manual_income = 0.0
    manual_expenses = 0.0
    rows = db.exec(
        in_window(select(ManualEntry.type, func.sum(ManualEntry.amount)).group_by(ManualEntry.type), ManualEntry.date)
    ).all()
    for entry_type, amount in rows:
        if entry_type == "income":
            manual_income += amount or 0
        else:
            manual_expenses += amount or 0

    product_profit = func.sum(OrderItem.profit)
    top_rows = db.exec(
        in_window(
            select(OrderItem.product_id, func.max(OrderItem.title), product_profit)
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status.in_(FULFILLED_STATUSES))
            .group_by(OrderItem.product_id)
            .order_by(product_profit.desc())
            .limit(TOP_PRODUCTS_LIMIT),
            Order.created_at,
        )
    ).all()
    top_products = [
        {"product_id": product_id, "title": title or "Product Not Found", "total_profit": profit or 0}
        for product_id, title, profit in top_rows
    ]

    return {
        "summary": {
            "total_revenue": total_revenue,
            "total_cost": total_cost,
            "total_profit": total_profit,
            "manual_income": manual_income,
            "manual_expenses": manual_expenses,
            "net_profit": total_profit + manual_income - manual_expenses,
            "order_count": order_count,
            "total_orders": total_orders,
        },
        "top_profitable_products": top_products,
        "timeframe": timeframe,
        "date_range": {"start": window[0].isoformat(), "end": window[1].isoformat()} if window else None,
    }


def recalculate_order_profits(db: Session, force: bool = False) -> dict:
    """Recomputes profit data for fulfilled orders; only those missing it unless force."""
    stmt = select(Order).where(Order.status.in_(FULFILLED_STATUSES))
    if not force:
        stmt = stmt.where(Order.total_profit.is_(None))
    orders = list(db.exec(stmt).all())
    success = 0
    errors = 0
    for order in orders:
        if not order.items:
            errors += 1
            log.warning("order %s has no line items; profit not calculated", order.id)
            continue
        apply_order_profit(order)
        db.add(order)
        success += 1
    db.commit()
    log.info("profit recalculation (force=%s): total=%d success=%d errors=%d", force, len(orders), success, errors)
    return {"total": len(orders), "success": success, "errors": errors}


def reset_financial_data(db: Session) -> dict:
    """Deletes every order (with its line items) and every manual entry. Coupon usage logs are kept."""
    items = db.exec(delete(OrderItem)).rowcount
    orders = db.exec(delete(Order)).rowcount
    entries = db.exec(delete(ManualEntry)).rowcount
    db.commit()
    log.warning("financial data reset: orders=%d items=%d manual_entries=%d", orders, items, entries)
    return {"orders_deleted": orders, "manual_entries_deleted": entries}
