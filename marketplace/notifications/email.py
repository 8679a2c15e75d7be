"""Transactional emails: rendering and SMTP delivery.

Every ``send_*`` helper returns ``True`` when the message was handed to the
SMTP server and ``False`` otherwise; none of them raise.
"""
import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Any, Dict, List, Optional, Tuple

from ..common.config import settings
from ..common.db import utcnow

_logger = logging.getLogger(__name__)

BRAND = "SY Closeouts"


def smtp_configured() -> bool:
    return bool(settings.SMTP_HOST and settings.SMTP_USER and settings.SMTP_PASS)


def _build_message(to_email: str, subject: str, body: str, html_body: Optional[str]):
    if html_body:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
    else:
        msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = settings.SMTP_FROM or settings.SMTP_USER
    msg["To"] = to_email
    return msg


def _send_blocking(to_email: str, msg) -> None:
    sender = settings.SMTP_FROM or settings.SMTP_USER
    if settings.SMTP_PORT == 465:
        with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.login(settings.SMTP_USER, settings.SMTP_PASS)
            server.sendmail(sender, to_email, msg.as_string())
        return
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASS)
        server.sendmail(sender, to_email, msg.as_string())


async def send_email(to_email: str, subject: str, body: str, html_body: Optional[str] = None) -> bool:
    if not smtp_configured():
        _logger.warning("Email transport not configured; skipping | to=%s subject=%s", to_email, subject)
        return False
    msg = _build_message(to_email, subject, body, html_body)
    try:
        await asyncio.to_thread(_send_blocking, to_email, msg)
    except smtplib.SMTPAuthenticationError as e:
        _logger.error("SMTP authentication failed: %s", e)
        return False
    except (smtplib.SMTPException, OSError) as e:
        _logger.error("Failed to send email | to=%s subject=%s err=%s", to_email, subject, e)
        return False
    _logger.info("Email sent | to=%s subject=%s", to_email, subject)
    return True


# --- rendering -------------------------------------------------------------

def _variation_text(selected: Optional[Dict[str, str]]) -> str:
    if not selected:
        return ""
    return " (" + ", ".join(f"{k}: {v}" for k, v in selected.items()) + ")"


def _order_date(order: Dict[str, Any]) -> str:
    created = order.get("created_at")
    try:
        when = datetime.fromisoformat(created) if created else utcnow()
    except ValueError:
        when = utcnow()
    return when.strftime("%a %b %d %Y")


def render_invoice(order: Dict[str, Any], items: List[Dict[str, Any]], buyer_name: str = "") -> Tuple[str, str, str]:
    # total_amount is always the sum of the item lines
    total = float(order["total_amount"])

    lines = "\n".join(
        f"{i['title']}{_variation_text(i.get('selected_variations'))} x{i['quantity']} - ${float(i['total_price']):.2f}"
        for i in items
    )
    text = (
        "Thank you for your order!\n\n"
        f"Order ID: {order['code']}\n"
        f"Total: ${total:.2f}\n"
        f"\nItems:\n{lines}\n\nWe appreciate your business!"
    )

    rows = "\n".join(
        "<tr>"
        f"<td>{escape(i['title'])}{escape(_variation_text(i.get('selected_variations')))}</td>"
        f"<td align=\"center\">{i['quantity']}</td>"
        f"<td align=\"right\">${float(i['total_price']):.2f}</td>"
        "</tr>"
        for i in items
    )
    greeting = f"<strong>{escape(buyer_name)}</strong>" if buyer_name else "Customer"
    html = f"""<!DOCTYPE html>
<html lang="en">
  <body style="font-family:Arial, sans-serif;">
    <h1>{BRAND}</h1>
    <p>Hello {greeting},</p>
    <p>Thank you for your order! Here is your invoice:</p>
    <table width="100%" cellpadding="8" cellspacing="0">
      <thead><tr><th align="left">Item</th><th align="center">Qty</th><th align="right">Price</th></tr></thead>
      <tbody>
        {rows}
        <tr><td colspan="2" align="right"><strong>Total:</strong></td><td align="right"><strong>${total:.2f}</strong></td></tr>
      </tbody>
    </table>
    <p>Invoice #: <strong>#INV-{escape(order['code'])}</strong></p>
    <p>Order Date: <strong>{_order_date(order)}</strong></p>
    <p>Questions? Contact <a href="mailto:{settings.SUPPORT_EMAIL}">{settings.SUPPORT_EMAIL}</a>.</p>
  </body>
</html>"""
    return f"Invoice for Order #{order['code']}", text, html


# --- senders ---------------------------------------------------------------

async def send_invoice_email(to: str, order: Dict[str, Any], items: List[Dict[str, Any]], buyer_name: str = "") -> bool:
    subject, text, html = render_invoice(order, items, buyer_name)
    return await send_email(to, subject, text, html)


async def send_seller_order_email(
    to: str, order: Dict[str, Any], items: List[Dict[str, Any]], buyer_name: str = "", payout: Optional[float] = None
) -> bool:
    lines = "\n".join(
        f"{i['title']}{_variation_text(i.get('selected_variations'))} x{i['quantity']}" for i in items
    )
    text = (
        f"You have a new order #{order['code']}"
        + (f" from {buyer_name}" if buyer_name else "")
        + f".\n\nItems:\n{lines}\n"
        + (f"\nExpected payout: ${payout:.2f}\n" if payout is not None else "")
        + "\nPlease prepare the shipment."
    )
    return await send_email(to, f"New order #{order['code']}", text)


async def send_wire_instructions_email(to: str, order: Dict[str, Any]) -> bool:
    text = (
        "Thank you for your order!\n\n"
        f"Order ID: {order['code']}\n"
        f"Amount due: ${float(order['total_amount']):.2f}\n\n"
        "Please wire the invoice total using the account details below. "
        "Your order will not be processed until the wire is received. "
        "If payment is not received within 48 hours the order will be cancelled.\n\n"
        f"Account number: {settings.WIRE_ACCOUNT_NUMBER}\n"
        f"Routing number: {settings.WIRE_ROUTING_NUMBER}\n"
        f"Reference: {order['code']}"
    )
    return await send_email(to, f"Wire instructions for Order #{order['code']}", text)


async def send_shipping_update_email(to: str, order: Dict[str, Any]) -> bool:
    text = f"Your order status is now: {order['status']}"
    if order.get("tracking_number"):
        text += f"\nTracking number: {order['tracking_number']}"
    return await send_email(to, f"Shipping update for Order #{order['code']}", text)


async def send_order_cancelled_email(to: str, order_code: str) -> bool:
    text = f"Your order #{order_code} has been cancelled. Contact {settings.SUPPORT_EMAIL} with any questions."
    return await send_email(to, f"Order #{order_code} cancelled", text)


async def send_password_reset_email(to: str, code: str) -> bool:
    minutes = max(settings.RESET_CODE_TTL_SECONDS // 60, 1)
    text = f"Your {BRAND} password reset code is {code}. It expires in {minutes} minutes."
    return await send_email(to, "Password reset code", text)
