"""
Order confirmation email

Renders the confirmation with Jinja2 and hands it to an SMTP relay.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Dict, Optional, Tuple

from jinja2 import Environment, select_autoescape

logger = logging.getLogger(__name__)


def format_amount(value) -> str:
    value = float(value or 0)
    if value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


_env = Environment(autoescape=select_autoescape(default_for_string=True, default=True))
_env.filters["amount"] = format_amount

ORDER_HTML = _env.from_string("""\
<div style="font-family:Arial,sans-serif;color:#333;">
  <h2>Thank you for your order, {{ shipping.name }}!</h2>
  <p>Your order <strong>#{{ order_id }}</strong> has been received.</p>
  <h3>Order Summary:</h3>
  <ul>
  {% for item in items %}
    <li>{{ item.name }} - ₹{{ item.price | amount }} × {{ item.quantity }}</li>
  {% endfor %}
  </ul>
  <p><strong>Total:</strong> ₹{{ total | amount }}</p>
  <p><strong>Payment Method:</strong> {{ payment_method or "Not specified" }}</p>
  <p>We'll deliver your order soon to:</p>
  <p>{{ shipping.address }}, {{ shipping.city }}, {{ shipping.state }} - {{ shipping.pincode }}</p>
  <br>
  <p style="color:#888;">- {{ store_name }} Team</p>
</div>
""")

_text_env = Environment(autoescape=False)
_text_env.filters["amount"] = format_amount

ORDER_TEXT = _text_env.from_string("""\
Thank you for your order, {{ shipping.name }}!
Order #{{ order_id }} has been received.

{% for item in items -%}
- {{ item.name }}: Rs. {{ item.price | amount }} x {{ item.quantity }}
{% endfor %}
Total: Rs. {{ total | amount }}
Payment method: {{ payment_method or "Not specified" }}
Delivery address: {{ shipping.address }}, {{ shipping.city }}, {{ shipping.state }} - {{ shipping.pincode }}
""")


def render_order_confirmation(order_id: str, order: Dict[str, Any], store_name: str = "Pearl Jewels") -> Tuple[str, str, str]:
    """Return (subject, html, text) for an order document."""
    context = {
        "order_id": order_id,
        "items": order.get("items", []),
        "total": order.get("total"),
        "shipping": order.get("shipping") or {},
        "payment_method": order.get("payment_method"),
        "store_name": store_name,
    }
    subject = f"Order Confirmation - {store_name}"
    return subject, ORDER_HTML.render(**context), ORDER_TEXT.render(**context)


class SMTPMailer:
    def __init__(self, host: str, port: int = 587, username: Optional[str] = None, password: Optional[str] = None, sender: Optional[str] = None, use_tls: bool = True):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender or ""
        message["To"] = to
        message.set_content(text or "")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.host, self.port) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)
        logger.debug("Handed message for %s to %s:%s", to, self.host, self.port)
