# Overview: Service-layer operations for checkout; payment intents, confirmation and gateway webhooks.

"""
Checkout / Payment Coordinator

WHY: Payment is where double-processing costs real money. Each entry point
is guarded so that retries and concurrent requests converge on one outcome.

DESIGN PRINCIPLES:
- One checkout session per order (unique order_id). A second checkout for
  the same order fails AlreadyProcessed; a failed session may be retried.
- Gateway failures never change order status; the session is marked failed.
- Confirmation requires the stored payment_intent_id; pending -> confirmed is
  a compare-and-set shared with the webhook path.
- Webhooks: signature verified before anything is read; the external event
  id is recorded in webhook_events (unique) in the same transaction as the
  effects, so a redelivered event is a no-op.

WEBHOOK EVENT TYPES (allow-list):
- payment_intent.succeeded       -> order confirmed, session confirmed
- payment_intent.payment_failed  -> session failed (order untouched)
Any other type is acknowledged and recorded, but ignored.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ApiError,
    ConflictError,
    InvalidSignature,
    PaymentGatewayError,
    UpstreamError,
    ValidationError,
    WebhookProcessingError,
)
from ..extensions import db
from ..models import CheckoutSession, Order, WebhookEvent
from shopapi.time_utils import utcnow
from . import audit_service
from .access_gate import Identity, require
from .concurrency import compare_and_set, run_with_retry
from .order_service import CONFIRMED, PENDING, apply_transition, load_order
from .payment_gateway import construct_webhook_event, get_gateway


SESSION_INITIATED = "initiated"
SESSION_CONFIRMED = "confirmed"
SESSION_FAILED = "failed"

ALLOWED_PAYMENT_METHODS = ("card", "upi", "netbanking", "wallet")

EVENT_PAYMENT_SUCCEEDED = "payment_intent.succeeded"
EVENT_PAYMENT_FAILED = "payment_intent.payment_failed"


def _already_processed(message: str = "Order has already been checked out") -> ConflictError:
    return ConflictError(message, code="AlreadyProcessed")


def _intent_mismatch() -> ConflictError:
    return ConflictError("Payment intent does not match this order", code="IntentMismatch")


# =============================================================================
# CHECKOUT
# =============================================================================

def _open_session(order: Order, payment_method: str) -> CheckoutSession:
    """
    Create (or reclaim a failed) checkout session for a pending order.

    Raises ConflictError(AlreadyProcessed) if the order is not pending or an
    active/confirmed session already exists.
    """
    if order.status != PENDING:
        raise _already_processed()

    existing = db.session.query(CheckoutSession).filter_by(order_id=order.id).first()
    if existing is not None:
        if existing.status != SESSION_FAILED:
            raise _already_processed()
        reclaimed = compare_and_set(CheckoutSession, existing.id, "status", SESSION_FAILED, {
            "status": SESSION_INITIATED,
            "payment_method": payment_method,
            "payment_intent_id": None,
            "client_secret": None,
            "failure_reason": None,
            "processed_at": None,
            "attempts": existing.attempts + 1,
        })
        if not reclaimed:
            db.session.rollback()
            raise _already_processed()
        db.session.commit()
        db.session.refresh(existing)
        return existing

    session = CheckoutSession(
        order_id=order.id,
        payment_method=payment_method,
        status=SESSION_INITIATED,
        attempts=1,
    )
    db.session.add(session)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent checkout of the same order created its session first
        db.session.rollback()
        raise _already_processed()
    return session


def _fail_session(session_id: int, reason: str) -> None:
    """Move an initiated session to failed so the order can be checked out again."""
    db.session.rollback()
    compare_and_set(CheckoutSession, session_id, "status", SESSION_INITIATED, {
        "status": SESSION_FAILED,
        "failure_reason": reason,
        "processed_at": utcnow(),
    })
    db.session.commit()


def process_checkout(caller: Identity, order_id: int, payment_method: str) -> CheckoutSession:
    """
    Start payment for a pending order.

    Raises:
        ValidationError: InvalidPaymentMethod
        NotFound / Forbidden: As for get_order
        ConflictError: AlreadyProcessed
        PaymentGatewayError / UpstreamTimeout: Gateway failed (order untouched)
    """
    if payment_method not in ALLOWED_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method. Must be one of: {', '.join(ALLOWED_PAYMENT_METHODS)}",
            code="InvalidPaymentMethod",
        )

    def _op():
        order = load_order(order_id)
        require(caller, order.owner_id)
        return order, _open_session(order, payment_method)

    order, session = run_with_retry(_op)
    session_id = session.id

    # Any failure from here on releases the session for a later retry
    try:
        intent = get_gateway().create_intent(
            order,
            payment_method,
            idempotency_key=f"checkout-{session_id}-attempt-{session.attempts}",
        )
        session.payment_intent_id = intent.id
        session.client_secret = intent.client_secret
        db.session.commit()
    except UpstreamError as exc:
        _fail_session(session_id, exc.message)
        current_app.logger.warning("Checkout for order %s failed at gateway: %s", order_id, exc.code)
        raise
    except Exception as exc:
        _fail_session(session_id, "Checkout could not be completed")
        current_app.logger.exception("Checkout for order %s failed unexpectedly", order_id)
        raise PaymentGatewayError() from exc

    current_app.logger.info("Checkout session %s opened for order %s (intent %s)", session.id, order.id, intent.id)
    return session


def _settle_paid(order: Order, session: CheckoutSession, actor_id: int | None) -> bool:
    """
    Mark a pending order confirmed and its session confirmed. Does not commit.

    Returns False (session untouched) if the order left pending concurrently.
    Orders no longer pending keep their status.
    """
    if order.status == PENDING and not apply_transition(order, PENDING, CONFIRMED, actor_id):
        return False

    if session.status != SESSION_CONFIRMED:
        compare_and_set(CheckoutSession, session.id, "status", session.status, {
            "status": SESSION_CONFIRMED,
            "processed_at": utcnow(),
            "failure_reason": None,
        })
    return True


def confirm_checkout(caller: Identity, order_id: int, payment_intent_id: str) -> tuple[Order, CheckoutSession]:
    """
    Confirm payment of an order with the intent returned at checkout.

    Idempotent: confirming an already confirmed checkout with the same
    intent returns the current state.

    Raises:
        NotFound / Forbidden: As for get_order
        ConflictError: IntentMismatch, PaymentFailed, AlreadyProcessed
    """
    def _op():
        order = load_order(order_id)
        require(caller, order.owner_id)

        session = db.session.query(CheckoutSession).filter_by(order_id=order.id).first()
        if session is None or not payment_intent_id or session.payment_intent_id != payment_intent_id:
            raise _intent_mismatch()

        if session.status == SESSION_FAILED:
            raise ConflictError("Payment for this order failed", code="PaymentFailed")

        if order.status not in (PENDING, CONFIRMED) and session.status != SESSION_CONFIRMED:
            raise _already_processed(f"Order is {order.status} and cannot be confirmed")

        if not _settle_paid(order, session, caller.id):
            db.session.rollback()
            raise _already_processed("Order status was changed by another request")

        db.session.commit()
        db.session.refresh(order)
        db.session.refresh(session)
        return order, session

    order, session = run_with_retry(_op)
    current_app.logger.info("Order %s payment confirmed by user %s", order.id, caller.id)
    return order, session


# =============================================================================
# WEBHOOKS
# =============================================================================

@dataclass(frozen=True)
class WebhookResult:
    event_id: str
    event_type: str
    duplicate: bool = False
    handled: bool = False


def _session_for_intent(intent: dict) -> CheckoutSession | None:
    intent_id = intent.get("id")
    if not isinstance(intent_id, str) or not intent_id:
        return None
    return db.session.query(CheckoutSession).filter_by(payment_intent_id=intent_id).first()


def _on_payment_succeeded(intent: dict) -> None:
    session = _session_for_intent(intent)
    if session is None:
        current_app.logger.warning("Webhook payment success for unknown intent %s", intent.get("id"))
        return

    order = db.session.get(Order, session.order_id)
    if order.status not in (PENDING, CONFIRMED):
        # Paid after cancellation: the session records the payment, order stays as is
        current_app.logger.warning(
            "Payment succeeded for order %s in status %s; order status unchanged", order.id, order.status
        )
    if not _settle_paid(order, session, actor_id=None):
        current_app.logger.warning("Order %s changed status while applying payment success", order.id)


def _on_payment_failed(intent: dict) -> None:
    session = _session_for_intent(intent)
    if session is None:
        current_app.logger.warning("Webhook payment failure for unknown intent %s", intent.get("id"))
        return

    error = intent.get("last_payment_error") or {}
    compare_and_set(CheckoutSession, session.id, "status", SESSION_INITIATED, {
        "status": SESSION_FAILED,
        "failure_reason": error.get("message") or "Payment failed",
        "processed_at": utcnow(),
    })


EVENT_HANDLERS = {
    EVENT_PAYMENT_SUCCEEDED: _on_payment_succeeded,
    EVENT_PAYMENT_FAILED: _on_payment_failed,
}


def handle_webhook(raw_payload: bytes, signature_header: str | None, ip_address: str | None = None) -> WebhookResult:
    """
    Verify and apply one gateway webhook delivery.

    Raises:
        InvalidSignature: Verification failed; nothing is recorded except the
            security event
        WebhookProcessingError: Applying the event failed; nothing is recorded
            so the gateway's redelivery will be processed
    """
    try:
        event = construct_webhook_event(raw_payload, signature_header)
    except InvalidSignature as exc:
        current_app.logger.warning("Rejected webhook delivery: %s", exc.message)
        audit_service.log_security_event(
            user_id=None,
            event_type="WEBHOOK_SIGNATURE_INVALID",
            success=False,
            resource="/api/checkout/webhook",
            reason=exc.message,
            ip_address=ip_address,
        )
        raise

    event_id = str(event["id"])
    event_type = str(event["type"])

    def _process() -> WebhookResult:
        if db.session.query(WebhookEvent.id).filter_by(external_event_id=event_id).first():
            return WebhookResult(event_id, event_type, duplicate=True)

        handler = EVENT_HANDLERS.get(event_type)
        if handler is not None:
            data = event.get("data")
            data_object = data.get("object") if isinstance(data, dict) else None
            handler(data_object if isinstance(data_object, dict) else {})

        db.session.add(WebhookEvent(
            external_event_id=event_id,
            event_type=event_type,
            handled=handler is not None,
            processed_at=utcnow(),
        ))
        try:
            db.session.commit()
        except IntegrityError:
            # Concurrent delivery of the same event committed first
            db.session.rollback()
            return WebhookResult(event_id, event_type, duplicate=True)
        return WebhookResult(event_id, event_type, handled=handler is not None)

    try:
        result = run_with_retry(_process)
    except ApiError:
        db.session.rollback()
        raise
    except Exception as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to process webhook event %s (%s)", event_id, event_type)
        raise WebhookProcessingError() from exc

    if result.duplicate:
        current_app.logger.info("Webhook event %s already processed", event_id)
    elif result.handled:
        current_app.logger.info("Webhook event %s (%s) processed", event_id, event_type)
    else:
        current_app.logger.info("Webhook event %s (%s) acknowledged and ignored", event_id, event_type)
    return result
