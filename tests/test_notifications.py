"""Exclusive coupon e-mails for user-scoped coupons."""
from sqlmodel import Session

from xenostore.core import database
from xenostore.models import User
from xenostore.services import email_sender
from xenostore.services.email_sender import build_exclusive_coupon_html, describe_discount, notify_exclusive_coupon

COUPON = {
    "code": "VIP20",
    "discount_type": "percentage",
    "discount_value": 20,
    "max_discount": 300,
    "expires_at": "2030-01-01T00:00:00",
}


def test_describe_discount():
    assert describe_discount(COUPON) == "20% OFF (Max: NPR 300)"
    assert describe_discount({"discount_type": "flat", "discount_value": 150}) == "NPR 150 OFF"


def test_html_escapes_name():
    subject, html = build_exclusive_coupon_html(COUPON, "<b>Ram</b>")
    assert "VIP20" in subject
    assert "&lt;b&gt;Ram&lt;/b&gt;" in html


def test_notify_sends_to_known_users(client, monkeypatch):
    with Session(database.engine) as db:
        db.add(User(uid="u1", email="u1@example.com", full_name="Sita"))
        db.commit()
    sent = []
    monkeypatch.setattr(email_sender, "send_email", lambda to, subject, html: sent.append(to) or True)
    assert notify_exclusive_coupon(COUPON, ["u1", "missing-user"]) == 1
    assert sent == ["u1@example.com"]


def test_send_email_without_smtp_is_noop(monkeypatch):
    monkeypatch.setattr(email_sender.settings, "smtp_host", "")
    assert email_sender.send_email("a@example.com", "s", "<p>x</p>") is False


def test_user_coupon_creation_schedules_notification(client, admin_headers, monkeypatch):
    calls = []
    monkeypatch.setattr(
        "xenostore.admin.routers.coupons.notify_exclusive_coupon",
        lambda coupon, user_ids: calls.append((coupon["code"], user_ids)),
    )
    r = client.post(
        "/admin/coupons",
        json={
            "code": "vip20",
            "discount_type": "percentage",
            "discount_value": 20,
            "valid_for": "user",
            "users": ["u1"],
            "usage_limit": 1,
            "usage_per_user": 1,
            "expires_at": "2030-01-01T00:00:00",
        },
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert calls == [("VIP20", ["u1"])]
