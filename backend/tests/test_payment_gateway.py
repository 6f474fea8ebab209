# Overview: Pytest coverage for the Stripe gateway client; intent creation and error mapping.

"""
Payment Gateway Tests

stripe.PaymentIntent.create is replaced for every test, so nothing here
reaches the network. Verifies that Stripe SDK errors are mapped onto the
API's upstream errors and that the idempotency key is passed through.
"""

from types import SimpleNamespace

import pytest
import stripe

from shopapi.errors import PaymentGatewayError, UpstreamTimeout
from shopapi.services.payment_gateway import StripeGateway


ORDER = SimpleNamespace(id=41, owner_id=7, total_cents=20000)


@pytest.fixture
def stripe_gateway(monkeypatch):
    # Keep the SDK's global client settings untouched by _configure()
    monkeypatch.setattr(stripe, "default_http_client", stripe.default_http_client)
    monkeypatch.setattr(stripe, "max_network_retries", stripe.max_network_retries)
    return StripeGateway(api_key="sk_test_gateway", currency="inr", timeout=5)


def _raise(error):
    def create(**kwargs):
        raise error
    return create


def test_create_intent_passes_amount_and_idempotency_key(monkeypatch, stripe_gateway):
    captured = {}

    def create(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(id="pi_123", client_secret="pi_123_secret", status="requires_payment_method")

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    intent = stripe_gateway.create_intent(ORDER, "card", idempotency_key="checkout-3-attempt-1")

    assert intent.id == "pi_123"
    assert intent.client_secret == "pi_123_secret"
    assert captured["amount"] == 20000
    assert captured["currency"] == "inr"
    assert captured["payment_method_types"] == ["card"]
    assert captured["idempotency_key"] == "checkout-3-attempt-1"
    assert captured["metadata"] == {"order_id": "41", "owner_id": "7"}


def test_connection_error_is_upstream_timeout(monkeypatch, stripe_gateway):
    monkeypatch.setattr(stripe.PaymentIntent, "create", _raise(stripe.APIConnectionError("read timed out")))

    with pytest.raises(UpstreamTimeout) as exc_info:
        stripe_gateway.create_intent(ORDER, "card", idempotency_key="k")
    assert exc_info.value.http_status == 504


@pytest.mark.parametrize("error", [
    stripe.InvalidRequestError("Amount must be at least 50 paise", "amount"),
    stripe.AuthenticationError("Invalid API key provided"),
    stripe.APIError("Something went wrong on Stripe's end"),
])
def test_api_errors_are_payment_gateway_errors(monkeypatch, stripe_gateway, error):
    monkeypatch.setattr(stripe.PaymentIntent, "create", _raise(error))

    with pytest.raises(PaymentGatewayError) as exc_info:
        stripe_gateway.create_intent(ORDER, "card", idempotency_key="k")
    assert exc_info.value.http_status == 502


def test_missing_secret_key_is_payment_gateway_error(monkeypatch):
    called = []
    monkeypatch.setattr(stripe.PaymentIntent, "create", lambda **kwargs: called.append(kwargs))

    with pytest.raises(PaymentGatewayError):
        StripeGateway(api_key=None).create_intent(ORDER, "card", idempotency_key="k")
    assert called == []


def test_gateway_errors_reach_the_client_as_envelopes(monkeypatch, app, client, customer_headers, place_order):
    order = place_order(customer_headers)
    monkeypatch.setitem(app.extensions, "payment_gateway", StripeGateway(api_key="sk_test_gateway"))
    monkeypatch.setattr(stripe, "default_http_client", stripe.default_http_client)
    monkeypatch.setattr(stripe, "max_network_retries", stripe.max_network_retries)
    monkeypatch.setattr(stripe.PaymentIntent, "create", _raise(stripe.APIConnectionError("connection reset")))

    resp = client.post("/api/checkout", json={"order_id": order["id"], "payment_method": "card"}, headers=customer_headers)
    assert resp.status_code == 504
    assert resp.json["code"] == "UpstreamTimeout"
