# Overview: Payment gateway client (Stripe) and webhook signature verification.

"""
Payment Gateway

WHY: The checkout coordinator only needs two things from the gateway:
create a payment intent for an order, and verify that a webhook delivery
really came from the gateway. Both live here so the rest of the code never
touches the Stripe SDK directly.

The active gateway is stored in app.extensions["payment_gateway"] and can be
replaced (tests install a fake).

TIMEOUTS: The HTTP client is built with PAYMENT_GATEWAY_TIMEOUT and the SDK
retries network failures once. Connection failures and timeouts surface as
UpstreamTimeout, API errors as PaymentGatewayError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

import stripe
from flask import current_app

from ..errors import InvalidSignature, PaymentGatewayError, UpstreamTimeout


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str | None
    status: str


class StripeGateway:
    """Payment gateway backed by the Stripe API."""

    def __init__(self, api_key: str | None, currency: str = "inr", timeout: int = 10):
        self.api_key = api_key
        self.currency = currency
        self.timeout = timeout
        self._configured = False

    def _configure(self) -> None:
        if self._configured:
            return
        stripe.max_network_retries = 1
        stripe.default_http_client = stripe.new_default_http_client(timeout=self.timeout)
        self._configured = True

    def create_intent(self, order, payment_method: str, idempotency_key: str) -> PaymentIntent:
        """
        Create a payment intent for the order total.

        idempotency_key identifies one checkout attempt, so a network retry
        of the same attempt can never create a second intent.
        """
        if not self.api_key:
            current_app.logger.warning("Stripe secret key not configured")
            raise PaymentGatewayError("Payments are not currently available")

        self._configure()
        try:
            intent = stripe.PaymentIntent.create(
                amount=int(order.total_cents),
                currency=self.currency,
                payment_method_types=[payment_method],
                metadata={"order_id": str(order.id), "owner_id": str(order.owner_id)},
                api_key=self.api_key,
                idempotency_key=idempotency_key,
            )
        except stripe.APIConnectionError as exc:
            current_app.logger.warning("Payment gateway unreachable for order %s: %s", order.id, exc)
            raise UpstreamTimeout("Payment gateway did not respond in time")
        except stripe.StripeError as exc:
            current_app.logger.warning("Payment gateway rejected intent for order %s: %s", order.id, exc)
            raise PaymentGatewayError("Payment gateway error")

        return PaymentIntent(id=intent.id, client_secret=intent.client_secret, status=intent.status)


def init_payment_gateway(app) -> None:
    app.extensions["payment_gateway"] = StripeGateway(
        api_key=app.config.get("STRIPE_SECRET_KEY"),
        currency=app.config.get("PAYMENT_CURRENCY", "inr"),
        timeout=app.config.get("PAYMENT_GATEWAY_TIMEOUT", 10),
    )


def get_gateway():
    return current_app.extensions["payment_gateway"]


def construct_webhook_event(raw_payload: bytes, signature_header: str | None) -> dict:
    """
    Verify a webhook delivery and return the decoded event.

    Uses Stripe's signature scheme ("t=<ts>,v1=<hmac-sha256>") with
    STRIPE_WEBHOOK_SECRET and STRIPE_WEBHOOK_TOLERANCE.

    Raises:
        InvalidSignature: Missing secret or header, bad signature, stale
            timestamp, or a payload that is not a JSON event object
    """
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        current_app.logger.error("Stripe webhook secret not configured - webhooks will not be processed")
        raise InvalidSignature()
    if not signature_header:
        raise InvalidSignature()

    try:
        payload = raw_payload.decode("utf-8") if isinstance(raw_payload, bytes) else raw_payload
    except UnicodeDecodeError:
        raise InvalidSignature("Invalid webhook payload")
    try:
        stripe.WebhookSignature.verify_header(
            payload,
            signature_header,
            secret,
            tolerance=current_app.config.get("STRIPE_WEBHOOK_TOLERANCE", 300),
        )
    except stripe.SignatureVerificationError:
        raise InvalidSignature()

    try:
        event = json.loads(payload)
    except ValueError:
        raise InvalidSignature("Invalid webhook payload")
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise InvalidSignature("Invalid webhook payload")
    return event
