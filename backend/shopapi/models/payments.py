from __future__ import annotations

from ..extensions import db
from shopapi.time_utils import to_utc_z


class CheckoutSession(db.Model):
    """
    Payment attempt for an order.

    WHY: At most one checkout session exists per order (unique order_id).
    The unique index is what stops two concurrent checkouts of the same
    order from both reaching the payment gateway.
    """
    __tablename__ = "checkout_sessions"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_checkout_sessions_order"),
        db.CheckConstraint(
            "status IN ('initiated', 'confirmed', 'failed')",
            name="ck_checkout_sessions_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)
    payment_intent_id = db.Column(db.String(255), nullable=True, unique=True)
    client_secret = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="initiated", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=1)  # incremented when a failed session is retried
    failure_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    order = db.relationship("Order", backref=db.backref("checkout_session", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "payment_method": self.payment_method,
            "payment_intent_id": self.payment_intent_id,
            "client_secret": self.client_secret,
            "status": self.status,
            "attempts": self.attempts,
            "created_at": to_utc_z(self.created_at),
            "processed_at": to_utc_z(self.processed_at) if self.processed_at else None,
        }


class WebhookEvent(db.Model):
    """
    Idempotency table for gateway webhooks.

    Every processed event is recorded by its external event id. The unique
    index is the single guard against reprocessing a redelivered event.
    """
    __tablename__ = "webhook_events"
    __table_args__ = (
        db.UniqueConstraint("external_event_id", name="uq_webhook_events_external_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    external_event_id = db.Column(db.String(255), nullable=False)
    event_type = db.Column(db.String(128), nullable=False)
    handled = db.Column(db.Boolean, nullable=False, default=True)  # False for acknowledged-but-ignored types
    processed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "external_event_id": self.external_event_id,
            "event_type": self.event_type,
            "handled": self.handled,
            "processed_at": to_utc_z(self.processed_at),
        }
