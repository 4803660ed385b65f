"""Finance report, manual entries and profit recalculation."""
from datetime import date, datetime, timezone

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from xenostore.models import ManualEntry, Order, OrderItem
from xenostore.services.finance import date_range, financial_stats, recalculate_order_profits, reset_financial_data
from xenostore.services.profit import apply_order_profit


def _utc(*parts) -> datetime:
    return datetime(*parts, tzinfo=timezone.utc)


def _fulfilled_order(db: Session, created_at: datetime, status="completed", discount=0.0, with_profit=True):
    order = Order(
        user_id="u1",
        payment_method="esewa",
        status=status,
        subtotal=1500,
        total=1500 - discount,
        coupon_discount=discount,
        created_at=created_at,
    )
    order.items = [
        OrderItem(product_id="p1", title="60 UC", unit_price=1000, cost_price=600),
        OrderItem(product_id="p2", title="Pass", unit_price=500, cost_price=400),
    ]
    if with_profit:
        apply_order_profit(order)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def test_date_range_week_starts_sunday():
    # 2024-05-15 is a Wednesday
    now = _utc(2024, 5, 15, 12, 0)
    start, end = date_range("week", now=now)
    assert start == _utc(2024, 5, 12)
    assert end == now


def test_date_range_custom_end_inclusive():
    start, end = date_range("custom", date(2024, 1, 1), date(2024, 1, 31))
    assert start == _utc(2024, 1, 1)
    assert end == _utc(2024, 2, 1)
    assert date_range("custom", date(2024, 1, 1), None) is None
    assert date_range("all") is None


def test_date_range_month_rolls_over_year():
    start, end = date_range("month", now=_utc(2024, 12, 20, 8, 0))
    assert start == _utc(2024, 12, 1)
    assert end == _utc(2025, 1, 1)


def test_stats_sum_fulfilled_orders_and_manual_entries(db):
    now = _utc(2024, 5, 15, 12, 0)
    _fulfilled_order(db, _utc(2024, 5, 14, 10, 0), discount=150)
    _fulfilled_order(db, _utc(2024, 5, 14, 11, 0), status="delivered")
    _fulfilled_order(db, _utc(2024, 5, 14, 12, 0), status="pending")
    db.add(ManualEntry(type="income", description="Affiliate payout", amount=500, category="affiliate",
                       date=_utc(2024, 5, 13)))
    db.add(ManualEntry(type="expense", description="Ads", amount=200, category="advertising",
                       date=_utc(2024, 5, 13)))
    db.commit()

    stats = financial_stats(db, "week", now=now)
    s = stats["summary"]
    assert s["order_count"] == 2
    assert s["total_orders"] == 3
    assert s["total_revenue"] == 1350 + 1500
    assert s["total_cost"] == 2000
    assert s["total_profit"] == 350 + 500
    assert s["manual_income"] == 500
    assert s["manual_expenses"] == 200
    assert s["net_profit"] == 850 + 500 - 200
    top = stats["top_profitable_products"]
    assert top[0]["product_id"] == "p1"
    assert stats["date_range"]["start"] == "2024-05-12T00:00:00+00:00"


def test_stats_respect_timeframe(db):
    _fulfilled_order(db, _utc(2024, 4, 1, 10, 0))
    stats = financial_stats(db, "today", now=_utc(2024, 5, 15, 12, 0))
    assert stats["summary"]["order_count"] == 0
    assert stats["summary"]["total_profit"] == 0
    assert stats["top_profitable_products"] == []
    assert financial_stats(db, "all")["summary"]["order_count"] == 1


def test_recalculate_only_missing_unless_forced(db):
    missing = _fulfilled_order(db, _utc(2024, 5, 1), discount=150, with_profit=False)
    done = _fulfilled_order(db, _utc(2024, 5, 2))
    done.total_profit = 1
    db.add(done)
    db.commit()

    results = recalculate_order_profits(db)
    assert results == {"total": 1, "success": 1, "errors": 0}
    db.refresh(missing)
    assert missing.total_profit == 350
    db.refresh(done)
    assert done.total_profit == 1

    results = recalculate_order_profits(db, force=True)
    assert results["total"] == 2
    db.refresh(done)
    assert done.total_profit == 500


def test_recalculate_counts_orders_without_items(db):
    db.add(Order(user_id="u1", payment_method="esewa", status="completed"))
    db.commit()
    assert recalculate_order_profits(db) == {"total": 1, "success": 0, "errors": 1}


def test_manual_entry_crud(client: TestClient, admin_headers):
    r = client.post(
        "/admin/finance/manual-entries",
        json={"type": "expense", "description": "Server", "amount": 1200, "category": "utilities"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    entry_id = r.json()["data"]["id"]

    listed = client.get("/admin/finance/manual-entries", headers=admin_headers).json()["data"]
    assert listed["pagination"]["total_entries"] == 1
    assert listed["entries"][0]["category"] == "utilities"

    r = client.put(f"/admin/finance/manual-entries/{entry_id}", json={"amount": 900}, headers=admin_headers)
    assert r.json()["data"]["amount"] == 900

    stats = client.get("/admin/finance/stats", headers=admin_headers).json()["data"]
    assert stats["summary"]["manual_expenses"] == 900
    assert stats["summary"]["net_profit"] == -900

    assert client.delete(f"/admin/finance/manual-entries/{entry_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/admin/finance/manual-entries/{entry_id}", headers=admin_headers).status_code == 404


def test_manual_entry_rejects_unknown_category(client: TestClient, admin_headers):
    r = client.post(
        "/admin/finance/manual-entries",
        json={"type": "income", "description": "x", "amount": 10, "category": "lottery"},
        headers=admin_headers,
    )
    assert r.status_code == 422


def test_stats_rejects_unknown_timeframe(client: TestClient, admin_headers):
    assert client.get("/admin/finance/stats?timeframe=decade", headers=admin_headers).status_code == 400


def test_recalculate_endpoint(client: TestClient, admin_headers):
    r = client.post("/admin/finance/recalculate-profits?force=true", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["results"] == {"total": 0, "success": 0, "errors": 0}


def test_reset_all_data_requires_confirm(client: TestClient, admin_headers):
    client.post(
        "/admin/finance/manual-entries",
        json={"type": "expense", "description": "Ads", "amount": 300, "category": "advertising"},
        headers=admin_headers,
    )
    assert client.post("/admin/finance/reset-all-data", headers=admin_headers).status_code == 400
    assert client.get("/admin/finance/manual-entries", headers=admin_headers).json()["data"]["pagination"][
        "total_entries"
    ] == 1

    r = client.post("/admin/finance/reset-all-data?confirm=true", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["results"] == {"orders_deleted": 0, "manual_entries_deleted": 1}
    assert client.get("/admin/finance/manual-entries", headers=admin_headers).json()["data"]["entries"] == []


def test_reset_financial_data_removes_orders_and_items(db):
    _fulfilled_order(db, _utc(2024, 5, 1))
    _fulfilled_order(db, _utc(2024, 5, 2))
    db.add(ManualEntry(type="income", description="Sponsor", amount=1000, category="sponsorship", date=_utc(2024, 5, 3)))
    db.commit()

    assert reset_financial_data(db) == {"orders_deleted": 2, "manual_entries_deleted": 1}
    assert db.exec(select(OrderItem)).all() == []
    assert financial_stats(db, "all")["summary"]["total_revenue"] == 0
