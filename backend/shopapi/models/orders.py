from __future__ import annotations

from ..extensions import db
from shopapi.time_utils import to_utc_z

class Order(db.Model):
    """
    Customer order for one or more catalog services.

    WHY: Orders are documents with a guarded lifecycle. owner_id and
    total_cents are fixed at creation; status only moves through validated
    transitions, each recorded in order_status_history. Orders are never
    deleted (cancellation is a status).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_owner_status_created", "owner_id", "status", "created_at"),
        db.CheckConstraint(
            "status IN ('pending', 'confirmed', 'processing', 'completed', 'cancelled')",
            name="ck_orders_status",
        ),
        db.CheckConstraint("total_cents >= 0", name="ck_orders_total_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Lifecycle status
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # Server-computed at creation from catalog prices
    total_cents = db.Column(db.Integer, nullable=False)

    scheduled_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship("User", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
    )
    status_history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        lazy=True,
        order_by="OrderStatusHistory.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_history: bool = True) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "status": self.status,
            "total_cents": self.total_cents,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "lines": [line.to_dict() for line in self.lines],
        }
        if include_history:
            data["status_history"] = [entry.to_dict() for entry in self.status_history]
        return data


class OrderLine(db.Model):
    """Order line item with the unit price captured at order time."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "service_id": self.service_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class OrderStatusHistory(db.Model):
    """
    Audit trail of order status changes.

    IMMUTABLE: Append-only. Retained for the life of the order.
    """
    __tablename__ = "order_status_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False)
    changed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "changed_by": self.changed_by_user_id,
            "changed_at": to_utc_z(self.changed_at),
        }
