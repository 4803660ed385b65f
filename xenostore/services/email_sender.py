"""E-mail: exclusive coupon announcements for user-scoped coupons (SMTP)."""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from sqlmodel import Session, select

from xenostore.core.config import settings
from xenostore.core.database import engine
from xenostore.models import User

log = logging.getLogger("xenostore.email")


def is_mail_configured() -> bool:
    """Are the SMTP settings filled in?"""
    host = getattr(settings, "smtp_host", None) or ""
    return bool(host.strip())


def send_email(to: str, subject: str, html_body: str) -> bool:
    """Sends a single HTML e-mail. True on success."""
    if not is_mail_configured():
        log.warning("SMTP not configured; email not sent to %s", to)
        return False
    host = (settings.smtp_host or "").strip()
    port = int(getattr(settings, "smtp_port", 587) or 587)
    user = (getattr(settings, "smtp_user", None) or "").strip()
    password = (getattr(settings, "smtp_password", None) or "").strip()
    from_addr = (getattr(settings, "smtp_from", None) or "noreply@xenonepal.com").strip()
    from_name = (getattr(settings, "smtp_from_name", None) or settings.store_name).strip()
    use_tls = getattr(settings, "smtp_use_tls", True)
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_addr}>" if from_name else from_addr
    msg["To"] = to
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(host, port, timeout=15) as smtp:
            if use_tls:
                smtp.starttls()
            if user and password:
                smtp.login(user, password)
            smtp.sendmail(from_addr, [to], msg.as_string())
        log.info("Email sent to %s subject=%s", to, subject[:50])
        return True
    except (smtplib.SMTPException, OSError) as e:
        log.exception("Failed to send email to %s: %s", to, e)
        return False


def describe_discount(coupon: dict) -> str:
    currency = settings.currency
    if coupon.get("discount_type") == "percentage":
        text = f"{coupon.get('discount_value'):g}% OFF"
        if coupon.get("max_discount"):
            text += f" (Max: {currency} {coupon['max_discount']:g})"
        return text
    return f"{currency} {coupon.get('discount_value'):g} OFF"


def build_exclusive_coupon_html(coupon: dict, full_name: str | None = None) -> tuple[str, str]:
    """(subject, html) for the exclusive coupon announcement."""
    store = settings.store_name
    code = escape(coupon.get("code") or "")
    subject = f"Exclusive Coupon Just for You: {coupon.get('code')} - {store}"
    greeting = f"Hi {escape(full_name)}," if full_name else "Hi,"
    expires = coupon.get("expires_at") or ""
    shop_link = (settings.frontend_url or "").rstrip("/") or "#"
    html = f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8" /><title>{escape(subject)}</title></head>
<body style="font-family: system-ui, sans-serif; background: #0f172a; color: #e2e8f0; padding: 24px;">
  <div style="max-width: 520px; margin: 0 auto; background: #1e293b; border-radius: 12px; padding: 24px;">
    <p>{greeting}</p>
    <p>We're excited to share this exclusive coupon created especially for you!</p>
    <p style="font-size: 1.6rem; font-weight: 700; letter-spacing: 2px; color: #f59e0b;">{code}</p>
    <p>{escape(describe_discount(coupon))}</p>
    <p>Valid until: {escape(str(expires))}</p>
    <p><a href="{escape(shop_link)}" style="color: #f59e0b;">Shop now at {escape(store)}</a></p>
  </div>
</body>
</html>"""
    return subject, html


def notify_exclusive_coupon(coupon: dict, user_ids: list[str]) -> int:
    """
    Background task after a user-scoped coupon is created.
    Looks up each user's e-mail and sends the announcement; returns how many went out.
    Never raises: coupon creation must not depend on mail delivery.
    """
    if not user_ids:
        return 0
    sent = 0
    try:
        with Session(engine) as db:
            users = list(db.exec(select(User).where(User.uid.in_(user_ids))).all())
    except Exception as e:
        log.exception("Exclusive coupon notification: user lookup failed: %s", e)
        return 0
    found = {u.uid for u in users}
    for uid in user_ids:
        if uid not in found:
            log.warning("Exclusive coupon %s: no e-mail on file for user %s", coupon.get("code"), uid)
    for user in users:
        subject, html = build_exclusive_coupon_html(coupon, user.full_name)
        if send_email(user.email, subject, html):
            sent += 1
    log.info("Exclusive coupon %s: notified %d/%d users", coupon.get("code"), sent, len(user_ids))
    return sent
