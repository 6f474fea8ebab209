from __future__ import annotations

from ..extensions import db
from shopapi.time_utils import to_utc_z


class Service(db.Model):
    """
    Catalog entry that customers order.

    WHY: The catalog is the only source of prices. Order totals are always
    recomputed from price_cents here, never from request payloads.
    """
    __tablename__ = "services"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_services_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
