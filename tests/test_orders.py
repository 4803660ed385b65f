"""Checkout orders: coupon redemption inside order creation, admin order management."""
from datetime import timedelta

from fastapi.testclient import TestClient

from xenostore.core.clock import utcnow


def _coupon(client: TestClient, admin_headers, **overrides):
    body = {
        "code": "SAVE150",
        "discount_type": "flat",
        "discount_value": 150,
        "usage_limit": 5,
        "usage_per_user": 1,
        "expires_at": (utcnow() + timedelta(days=7)).isoformat(),
    }
    body.update(overrides)
    r = client.post("/admin/coupons", json=body, headers=admin_headers)
    assert r.status_code == 201, r.text
    return r.json()["coupon"]


def _order(**overrides):
    body = {
        "user_id": "u1",
        "payment_method": "khalti",
        "items": [
            {"product_id": "p-uc-60", "title": "60 UC", "unit_price": 1000, "cost_price": 600},
            {"product_id": "p-pass", "title": "Weekly pass", "unit_price": 250, "quantity": 2, "cost_price": 200},
        ],
    }
    body.update(overrides)
    return body


def test_order_without_coupon(client: TestClient, admin_headers):
    r = client.post("/orders", json=_order())
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["subtotal"] == 1500
    assert order["total"] == 1500
    assert order["coupon"] is None
    assert order["status"] == "pending"
    assert "profit_data" not in order


def test_order_with_coupon_records_usage_and_profit(client: TestClient, admin_headers):
    coupon = _coupon(client, admin_headers)
    r = client.post("/orders", json=_order(coupon_code="save150"))
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["total"] == 1350
    assert order["coupon"] == {"code": "SAVE150", "discount_amount": 150, "discount_type": "flat"}

    detail = client.get(f"/admin/coupons/{coupon['id']}", headers=admin_headers).json()["coupon"]
    assert detail["total_used"] == 1

    listed = client.get("/admin/orders", headers=admin_headers).json()
    assert listed["total"] == 1
    profit = listed["orders"][0]["profit_data"]
    assert profit["total_revenue"] == 1350
    assert profit["total_cost"] == 1000
    assert profit["total_profit"] == 350
    revenues = {i["product_id"]: i["revenue_after_discount"] for i in profit["item_profits"]}
    assert revenues == {"p-uc-60": 900, "p-pass": 450}


def test_rejected_coupon_leaves_no_order(client: TestClient, admin_headers):
    _coupon(client, admin_headers, usage_per_user=1)
    assert client.post("/orders", json=_order(coupon_code="SAVE150")).status_code == 201
    r = client.post("/orders", json=_order(coupon_code="SAVE150"))
    assert r.status_code == 400
    assert r.json()["error_type"] == "USER_LIMIT_REACHED"
    assert len(client.get("/orders/user/u1").json()) == 1


def test_order_needs_items(client: TestClient):
    r = client.post("/orders", json=_order(items=[]))
    assert r.status_code == 422


def test_orders_for_user(client: TestClient):
    client.post("/orders", json=_order())
    client.post("/orders", json=_order(user_id="u2"))
    orders = client.get("/orders/user/u1").json()
    assert len(orders) == 1
    assert orders[0]["user_id"] == "u1"


def test_admin_status_filter_and_update(client: TestClient, admin_headers):
    order_id = client.post("/orders", json=_order()).json()["order"]["id"]
    r = client.patch(f"/admin/orders/{order_id}/status", json={"status": "completed"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "completed"

    assert client.get("/admin/orders?status=completed", headers=admin_headers).json()["total"] == 1
    assert client.get("/admin/orders?status=pending", headers=admin_headers).json()["total"] == 0
    assert client.get("/admin/orders?status=lost", headers=admin_headers).status_code == 400

    r = client.patch(f"/admin/orders/{order_id}/status", json={"status": "teleported"}, headers=admin_headers)
    assert r.status_code == 422


def test_deleted_order_keeps_usage_row(client: TestClient, admin_headers):
    coupon = _coupon(client, admin_headers)
    order_id = client.post("/orders", json=_order(coupon_code="SAVE150")).json()["order"]["id"]
    assert client.delete(f"/admin/orders/{order_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/admin/orders/{order_id}", headers=admin_headers).status_code == 404

    report = client.get(f"/admin/coupons/{coupon['id']}/usage", headers=admin_headers).json()
    assert report["total_used"] == 1
    assert report["usage_details"][0]["order"] is None
