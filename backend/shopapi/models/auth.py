from __future__ import annotations

import enum

from ..extensions import db
from shopapi.time_utils import to_utc_z


class Role(str, enum.Enum):
    """
    Closed set of roles.

    WHY str mixin: values are stored as plain strings in users.role and in
    token claims, and compare equal to those strings.
    """
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        try:
            return cls(value)
        except ValueError:
            return None


class User(db.Model):
    """
    Identity: an authenticated subject with a role and a unique email.

    WHY: Every order and status change must be attributable. Email is unique
    across all users; the password is only ever stored as a bcrypt hash and
    is never serialized.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        db.CheckConstraint("role IN ('customer', 'staff', 'admin')", name="ck_users_role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=Role.CUSTOMER.value, index=True)

    first_name = db.Column(db.String(64), nullable=True)
    last_name = db.Column(db.String(64), nullable=True)
    phone = db.Column(db.String(16), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)

    # Deactivation is managed outside this service; inactive users cannot authenticate
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
        }

    def to_profile_dict(self) -> dict:
        data = self.to_dict()
        data.update({
            "phone": self.phone,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        })
        return data


class RevokedToken(db.Model):
    """
    Revocation set for session tokens.

    WHY: Tokens are self-contained JWTs, so logout must be recorded
    server-side or it is client-side only. Each row is keyed by the token's
    jti and carries the token's own expiry; once expires_at has passed the
    token is rejected as expired anyway and the row can be purged.
    """
    __tablename__ = "revoked_tokens"
    __table_args__ = (
        db.UniqueConstraint("jti", name="uq_revoked_tokens_jti"),
        db.Index("ix_revoked_tokens_expires_at", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "jti": self.jti,
            "user_id": self.user_id,
            "revoked_at": to_utc_z(self.revoked_at),
            "expires_at": to_utc_z(self.expires_at),
        }
