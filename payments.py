"""
Razorpay client

Creates pending gateway orders through the Orders REST API. The browser
completes the payment with Razorpay directly; nothing here verifies it.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.razorpay.com/v1"


class PaymentGatewayError(Exception):
    pass


class RazorpayClient:
    def __init__(self, key_id: str, key_secret: str, api_url: str = DEFAULT_API_URL, currency: str = "INR", session: Optional[requests.Session] = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.currency = currency
        self.session = session or requests.Session()

    def create_order(self, amount: int, receipt: Optional[str] = None) -> Dict[str, Any]:
        """Create a pending order for `amount` minor units (paise for INR)."""
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Razorpay keys are not configured")
        payload = {
            "amount": amount,
            "currency": self.currency,
            "receipt": receipt or f"receipt_order_{int(time.time() * 1000)}",
        }
        try:
            response = self.session.post(
                f"{self.api_url}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
            )
        except requests.RequestException as e:
            raise PaymentGatewayError(f"Razorpay request failed: {e}") from e
        if response.status_code >= 400:
            raise PaymentGatewayError(f"Razorpay returned {response.status_code}: {response.text[:200]}")
        order = response.json()
        logger.info("Created Razorpay order %s for %s %s", order.get("id"), amount, self.currency)
        return order
