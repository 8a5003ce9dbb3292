"""
Outbound customer email.

Order mails are fire-and-forget: callers queue ``deliver_best_effort`` after the
order is persisted, and a failed delivery is only logged.
"""
import smtplib
from email.message import EmailMessage
from typing import Iterable, List

import structlog

from ..config import settings
from ..models.models import Order
from .time_utils import local_display

log = structlog.get_logger(__name__)


def send_mail(to: str, subject: str, body: str) -> bool:
    """Send a plain-text mail. Returns False when mail is not configured."""
    if not settings.enable_email or not (settings.smtp_host and settings.mail_from):
        log.info("mail_skipped", to=to, subject=subject, reason="smtp_not_configured")
        return False
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.mail_from
    msg["To"] = to
    msg.set_content(body)
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as s:
        if settings.smtp_tls:
            s.starttls()
        if settings.smtp_username and settings.smtp_password:
            s.login(settings.smtp_username, settings.smtp_password)
        s.send_message(msg)
    return True


def deliver_best_effort(kind: str, to: str, subject: str, body: str) -> None:
    try:
        send_mail(to, subject, body)
        log.info("order_email_sent", kind=kind, to=to)
    except Exception as e:
        log.warning("order_email_failed", kind=kind, to=to, error=str(e))


def _product_lines(products: Iterable[dict]) -> List[str]:
    lines = []
    for i, p in enumerate(products, start=1):
        lines.append(
            f"{i}. {p.get('product_type', '')} - Qty: {p.get('qty')}, "
            f"Unit Price: ₹{p.get('unit_price')}, GST: {p.get('gst')}, Brand: {p.get('brand') or ''}"
        )
    return lines


def _money(value) -> str:
    return f"{float(value or 0):.2f}"


def order_confirmation(order: Order) -> tuple:
    subject = f"Order Confirmation - Order #{order.order_code}"
    body = "\n".join(
        [
            f"Dear {order.customer_name or 'Customer'},",
            "",
            "Thank you for placing your order with us. Below are your order details:",
            "",
            f"Order ID: {order.order_code}",
            f"Order Type: {order.order_type}",
            f"Total: ₹{_money(order.total)}",
            f"Date: {local_display(order.so_date)}",
            f"Dispatch From: {order.dispatch_from or 'N/A'}",
            "",
            "Products:",
            *_product_lines(order.products or []),
            "",
            "Thank you for your business.",
            f"– {settings.mail_signature}",
        ]
    )
    return subject, body


def dispatch_update(order: Order, dispatch_status: str) -> tuple:
    status_text = "dispatched" if dispatch_status == "Dispatched" else "delivered"
    subject = f"Order {status_text.capitalize()} Confirmation - Order #{order.order_code}"
    if dispatch_status == "Dispatched":
        date_line = f"Dispatch Date: {local_display(order.dispatch_date)}"
    else:
        date_line = f"Delivery Date: {local_display(order.receipt_date)}"
    body = "\n".join(
        [
            f"Dear {order.customer_name or 'Customer'},",
            "",
            f"We are pleased to inform you that your order has been {status_text}. Below are the order details:",
            "",
            f"Order ID: {order.order_code}",
            f"Order Type: {order.order_type or 'N/A'}",
            f"Total: ₹{_money(order.total)}",
            f"Dispatch From: {order.dispatch_from or 'N/A'}",
            date_line,
            "",
            f"Transporter Details: {order.transporter_details or 'N/A'}",
            f"Docket No: {order.docket_no or 'N/A'}",
            "",
            "Products:",
            *_product_lines(order.products or []),
            "",
            "Thank you for your business.",
            f"– {settings.mail_signature}",
        ]
    )
    return subject, body
