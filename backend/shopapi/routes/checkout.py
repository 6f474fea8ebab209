# Overview: Flask API routes for checkout and payment gateway webhooks.

# backend/shopapi/routes/checkout.py
"""
Checkout API Routes

- POST /api/checkout           start payment for a pending order
- POST /api/checkout/confirm   confirm with the payment intent id
- POST /api/checkout/webhook   gateway callback (signed, no bearer token)
"""

from flask import Blueprint, request, g

from ..decorators import require_auth
from ..errors import ValidationError, json_body, success
from ..services import checkout_service


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


def _order_id_from(data: dict) -> int:
    order_id = data.get("order_id")
    if isinstance(order_id, bool) or not isinstance(order_id, int):
        raise ValidationError("order_id must be an integer", code="InvalidOrderId")
    return order_id


@checkout_bp.post("")
@require_auth
def process_checkout_route():
    """
    Request body: {"order_id": 12, "payment_method": "card"}

    Returns:
        201: Checkout session with payment_intent_id and client_secret
        409: AlreadyProcessed
        502/504: Payment gateway failure (order unchanged)
    """
    data = json_body()
    session = checkout_service.process_checkout(
        g.identity,
        _order_id_from(data),
        data.get("payment_method"),
    )
    return success({"checkout_session": session.to_dict()}, status=201)


@checkout_bp.post("/confirm")
@require_auth
def confirm_checkout_route():
    """
    Request body: {"order_id": 12, "payment_intent_id": "pi_..."}

    Returns:
        200: Confirmed order and checkout session
        409: IntentMismatch, PaymentFailed, AlreadyProcessed
    """
    data = json_body()
    order, session = checkout_service.confirm_checkout(
        g.identity,
        _order_id_from(data),
        data.get("payment_intent_id"),
    )
    return success({"order": order.to_dict(), "checkout_session": session.to_dict()})


@checkout_bp.post("/webhook")
def webhook_route():
    """
    Payment gateway webhook.

    Returns:
        200: {"received": true} (also for duplicates and ignored event types)
        400: InvalidSignature
        500: WebhookProcessingError (gateway retries delivery)
    """
    result = checkout_service.handle_webhook(
        request.get_data(),
        request.headers.get("Stripe-Signature"),
        ip_address=request.remote_addr,
    )
    return success({
        "received": True,
        "event_id": result.event_id,
        "duplicate": result.duplicate,
        "handled": result.handled,
    })
