"""
Order placement

The order document is the source of truth: a store failure fails the checkout,
while the confirmation email is best effort and only reported back.
"""

import logging
from typing import Literal, Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo.database import Database

from database import create_document
from mailer import render_order_confirmation
from schemas import Order

logger = logging.getLogger(__name__)


class NotificationOutcome(BaseModel):
    status: Literal["sent", "failed", "skipped"]
    reason: Optional[str] = None


class OrderPlacement(BaseModel):
    order_id: str
    notification: NotificationOutcome


def notify_customer(mailer, order_id: str, order: Order, store_name: str = "Pearl Jewels") -> NotificationOutcome:
    recipient = order.shipping.email
    if not recipient:
        return NotificationOutcome(status="skipped", reason="No email on shipping details")
    try:
        subject, html, text = render_order_confirmation(order_id, order.model_dump(), store_name=store_name)
        mailer.send(recipient, subject, html, text)
    except Exception as e:
        logger.error("Failed to send confirmation email for order %s to %s: %s", order_id, recipient, e)
        return NotificationOutcome(status="failed", reason=str(e) or e.__class__.__name__)
    logger.info("Confirmation email sent to %s for order %s", recipient, order_id)
    return NotificationOutcome(status="sent")


def place_order(db: Database, mailer, order: Order, store_name: str = "Pearl Jewels") -> OrderPlacement:
    doc = order.model_dump()
    if ObjectId.is_valid(order.user):
        doc["user"] = ObjectId(order.user)
    order_id = create_document(db, "order", doc)
    notification = notify_customer(mailer, order_id, order, store_name=store_name)
    return OrderPlacement(order_id=order_id, notification=notification)
