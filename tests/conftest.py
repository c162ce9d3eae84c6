import smtplib

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from database import ensure_indexes, get_db
from main import app, get_mailer, get_payment_gateway
from payments import PaymentGatewayError


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.error = None
        self.refused = set()

    def send(self, to, subject, html, text=None):
        if self.error is not None:
            raise self.error
        if to in self.refused:
            raise smtplib.SMTPRecipientsRefused({to: (550, b"5.1.1 Recipient address rejected")})
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})


class FakeGateway:
    def __init__(self):
        self.calls = []
        self.fail = False

    def create_order(self, amount, receipt=None):
        if self.fail:
            raise PaymentGatewayError("gateway unreachable")
        self.calls.append(amount)
        return {"id": f"order_test_{len(self.calls)}", "amount": amount, "currency": "INR", "status": "created"}


class BrokenCollection:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("No servers available")
        return fail


class BrokenDatabase:
    def __getitem__(self, name):
        return BrokenCollection()


@pytest.fixture
def store():
    db = mongomock.MongoClient()["pearl_jewels_test"]
    ensure_indexes(db)
    return db


@pytest.fixture
def broken_db():
    return BrokenDatabase()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(store, mailer, gateway):
    app.dependency_overrides[get_db] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def token(client):
    response = client.post("/api/signup", json={"name": "A", "email": "a@x.com", "password": "p1", "contact": "123"})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
