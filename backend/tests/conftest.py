"""
Pytest fixtures for shop-api backend tests.

Provides an in-memory database, a fake payment gateway, users for every
role, catalog services, and helpers for bearer tokens and signed webhooks.
"""

import hashlib
import hmac
import json
import time

import pytest

from shopapi import create_app
from shopapi.extensions import db
from shopapi.models import Role, Service
from shopapi.services import auth_service, token_service
from shopapi.services.payment_gateway import PaymentIntent


WEBHOOK_SECRET = "whsec_test_secret"
PASSWORD = "Str0ng!Pass"


class FakeGateway:
    """Stands in for StripeGateway; records calls and can be told to fail."""

    def __init__(self):
        self.calls = []
        self.fail_with = None

    def create_intent(self, order, payment_method, idempotency_key):
        self.calls.append({
            "order_id": order.id,
            "amount": order.total_cents,
            "payment_method": payment_method,
            "idempotency_key": idempotency_key,
        })
        if self.fail_with is not None:
            raise self.fail_with
        intent_id = f"pi_test_{order.id}_{len(self.calls)}"
        return PaymentIntent(id=intent_id, client_secret=f"{intent_id}_secret", status="requires_payment_method")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'JWT_SECRET': 'test-jwt-secret-0123456789abcdef0123456789',
        'STRIPE_SECRET_KEY': None,
        'STRIPE_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'LOGIN_MAX_FAILED_ATTEMPTS': 3,
        'ORDERS_DEFAULT_PAGE_SIZE': 20,
        'ORDERS_MAX_PAGE_SIZE': 50,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh app context per test; all rows are wiped afterwards."""
    with app.app_context():
        yield
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture(autouse=True)
def gateway(app):
    """Install a fake payment gateway so no test reaches Stripe."""
    fake = FakeGateway()
    original = app.extensions["payment_gateway"]
    app.extensions["payment_gateway"] = fake
    yield fake
    app.extensions["payment_gateway"] = original


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def make_user(email: str, role: Role = Role.CUSTOMER, phone: str = "9876543210"):
    return auth_service.create_user(
        email=email,
        password=PASSWORD,
        phone=phone,
        date_of_birth="1990-04-12",
        role=role.value,
        first_name=email.split("@")[0].title(),
        rounds=4,
    )


@pytest.fixture
def customer():
    return make_user("asha@shopmail.in")


@pytest.fixture
def other_customer():
    return make_user("ravi@shopmail.in", phone="+919812345678")


@pytest.fixture
def staff():
    return make_user("staff@shopmail.in", role=Role.STAFF, phone="919700000001")


@pytest.fixture
def admin():
    return make_user("admin@shopmail.in", role=Role.ADMIN, phone="9600000002")


@pytest.fixture
def services():
    """Two active services and one inactive service."""
    cleaning = Service(name="Deep cleaning", price_cents=10000, is_active=True)
    plumbing = Service(name="Plumbing visit", price_cents=4550, is_active=True)
    retired = Service(name="Retired service", price_cents=999, is_active=False)
    db.session.add_all([cleaning, plumbing, retired])
    db.session.commit()
    return {"cleaning": cleaning, "plumbing": plumbing, "retired": retired}


def token_for(user) -> str:
    return token_service.issue(user.id, user.role)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(token_for(customer))


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(token_for(other_customer))


@pytest.fixture
def staff_headers(staff):
    return auth_headers(token_for(staff))


@pytest.fixture
def admin_headers(admin):
    return auth_headers(token_for(admin))


@pytest.fixture
def place_order(client, services):
    """Create an order over HTTP and return its JSON representation."""
    def _place(headers, quantity=2, service="cleaning"):
        resp = client.post("/api/orders", json={
            "line_items": [{"service_id": services[service].id, "quantity": quantity}],
        }, headers=headers)
        assert resp.status_code == 201, resp.json
        return resp.json["data"]["order"]
    return _place


def stripe_signature(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header value for payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def webhook_payload(event_id: str, event_type: str, intent: dict) -> str:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": intent},
    })


@pytest.fixture
def send_webhook(client):
    """
    Post a webhook event.

    signature=None signs the payload correctly; pass a string to send a
    specific header, or "" to send none.
    """
    def _send(event_id, event_type, intent, signature=None, raw=None):
        payload = raw if raw is not None else webhook_payload(event_id, event_type, intent)
        if signature is None:
            signature = stripe_signature(payload)
        headers = {"Stripe-Signature": signature} if signature else {}
        return client.post(
            "/api/checkout/webhook",
            data=payload,
            content_type="application/json",
            headers=headers,
        )
    return _send
