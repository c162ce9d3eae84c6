import smtplib

import pytest
import requests

import orders
from mailer import format_amount, render_order_confirmation
from orders import place_order
from payments import PaymentGatewayError, RazorpayClient
from schemas import Order


def make_order(email="buyer@x.com", name="Meera"):
    return Order(
        user="64b7f0c2a1b2c3d4e5f60718",
        items=[{"name": "Pearl Ring", "price": 1250.5, "qty": 2}],
        total=2501,
        shipping={"name": name, "email": email, "address": "4 Lake Rd", "city": "Pune", "state": "MH", "pincode": 411001},
        payment_method="UPI",
    )


def test_place_order_reports_sent(store, mailer):
    placement = place_order(store, mailer, make_order())
    assert placement.notification.status == "sent"
    assert store["order"].count_documents({}) == 1
    assert mailer.sent[0]["subject"] == "Order Confirmation - Pearl Jewels"


def test_place_order_reports_failed_notification(store, mailer):
    mailer.error = smtplib.SMTPRecipientsRefused({"buyer@x.com": (550, b"no such user")})
    placement = place_order(store, mailer, make_order())
    assert placement.notification.status == "failed"
    assert placement.notification.reason
    assert store["order"].count_documents({}) == 1


def test_place_order_skips_notification_without_email(store, mailer):
    placement = place_order(store, mailer, make_order(email=None))
    assert placement.notification.status == "skipped"
    assert mailer.sent == []
    assert store["order"].find_one({})["shipping"]["pincode"] == "411001"


def test_place_order_render_failure_is_soft(store, mailer, monkeypatch):
    def broken_render(*args, **kwargs):
        raise KeyError("pincode")

    monkeypatch.setattr(orders, "render_order_confirmation", broken_render)
    placement = place_order(store, mailer, make_order())
    assert placement.notification.status == "failed"
    assert store["order"].count_documents({}) == 1
    assert mailer.sent == []


def test_place_order_store_failure_propagates(mailer):
    class BrokenCollection:
        def insert_one(self, doc):
            raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        place_order({"order": BrokenCollection()}, mailer, make_order())
    assert mailer.sent == []


def test_render_order_confirmation():
    order = make_order(name="<script>alert(1)</script>")
    subject, html, text = render_order_confirmation("abc123", order.model_dump(), store_name="Pearl Jewels")
    assert subject == "Order Confirmation - Pearl Jewels"
    assert "#abc123" in html
    assert "Pearl Ring - ₹1,250.50 × 2" in html
    assert "₹2,501" in html
    assert "4 Lake Rd, Pune, MH - 411001" in html
    assert "<script>" not in html
    assert "UPI" in text


def test_format_amount():
    assert format_amount(150000) == "150,000"
    assert format_amount(99.5) == "99.50"


class FakeResponse:
    def __init__(self, status_code, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, auth=None):
        self.requests.append({"url": url, "json": json, "auth": auth})
        if self.error is not None:
            raise self.error
        return self.response


def test_razorpay_create_order():
    session = FakeSession(FakeResponse(200, {"id": "order_abc", "amount": 50000, "status": "created"}))
    client = RazorpayClient("key", "secret", api_url="https://api.example.com/v1/", session=session)
    order = client.create_order(50000)
    assert order["id"] == "order_abc"
    sent = session.requests[0]
    assert sent["url"] == "https://api.example.com/v1/orders"
    assert sent["auth"] == ("key", "secret")
    assert sent["json"]["amount"] == 50000
    assert sent["json"]["currency"] == "INR"
    assert sent["json"]["receipt"].startswith("receipt_order_")


def test_razorpay_error_status():
    session = FakeSession(FakeResponse(400, text='{"error": "BAD_REQUEST_ERROR"}'))
    client = RazorpayClient("key", "secret", session=session)
    with pytest.raises(PaymentGatewayError):
        client.create_order(100)


def test_razorpay_transport_error():
    session = FakeSession(error=requests.ConnectionError("no route"))
    client = RazorpayClient("key", "secret", session=session)
    with pytest.raises(PaymentGatewayError):
        client.create_order(100)


def test_razorpay_requires_keys():
    client = RazorpayClient("", "", session=FakeSession())
    with pytest.raises(PaymentGatewayError):
        client.create_order(100)
