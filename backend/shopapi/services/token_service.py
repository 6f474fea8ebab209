# Overview: Service-layer operations for session tokens; issuing, verifying and revoking JWTs.

"""
Session Token Service

WHY: Sessions are signed, self-contained credentials (JWT, HS256) so that
request handlers can verify identity without a session-table round trip.
Logout still has to be enforceable server-side, so every token carries a
unique jti and verification consults the revocation set on every call.

TOKEN CLAIMS:
- sub:  user id (string, per RFC 7519)
- role: customer | staff | admin
- iat:  issued at (epoch seconds)
- exp:  expiry (iat + JWT_EXPIRES_IN)
- jti:  random token id, the revocation key

FAILURE KINDS (TokenError.kind):
- Malformed:    not a JWT, missing claims, unknown role
- BadSignature: signature does not verify with JWT_SECRET
- Expired:      exp has passed
- Revoked:      jti present in revoked_tokens

REVOCATION STORE:
revoked_tokens rows live only as long as the token they revoke
(expires_at = token exp). cleanup_expired_revocations() purges the rest.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RevokedToken, Role
from shopapi.time_utils import utcnow


MALFORMED = "Malformed"
EXPIRED = "Expired"
BAD_SIGNATURE = "BadSignature"
REVOKED = "Revoked"

REQUIRED_CLAIMS = ["sub", "role", "iat", "exp", "jti"]


class TokenError(Exception):
    """Raised when a token fails verification. kind is one of the failure kinds above."""

    def __init__(self, kind: str, message: str | None = None):
        super().__init__(message or kind)
        self.kind = kind


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    role: Role
    issued_at: datetime
    expires_at: datetime
    jti: str


def _to_epoch(dt: datetime) -> int:
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, timezone.utc).replace(tzinfo=None)


def _signing_settings() -> tuple[str, str, int]:
    config = current_app.config
    return config["JWT_SECRET"], config["JWT_ALGORITHM"], int(config["JWT_EXPIRES_IN"])


def issue(subject_id: int, role: Role | str, *, now: datetime | None = None) -> str:
    """
    Issue a signed session token for a subject.

    Args:
        subject_id: User id
        role: The user's role at issue time
        now: Issue time override (UTC-naive); defaults to the current time

    Returns:
        Encoded JWT string
    """
    secret, algorithm, expires_in = _signing_settings()
    role = Role(role)
    issued_at = now or utcnow()
    expires_at = issued_at + timedelta(seconds=expires_in)

    payload = {
        "sub": str(subject_id),
        "role": role.value,
        "iat": _to_epoch(issued_at),
        "exp": _to_epoch(expires_at),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def _decode(token: str, *, verify_exp: bool = True) -> dict:
    secret, algorithm, _ = _signing_settings()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": REQUIRED_CLAIMS, "verify_exp": verify_exp},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError(EXPIRED, "Token has expired")
    except jwt.InvalidSignatureError:
        raise TokenError(BAD_SIGNATURE, "Token signature verification failed")
    except jwt.InvalidTokenError as exc:
        raise TokenError(MALFORMED, f"Malformed token: {exc}")


def _claims_from_payload(payload: dict) -> TokenClaims:
    role = Role.parse(payload.get("role"))
    if role is None:
        raise TokenError(MALFORMED, "Token carries an unknown role")
    try:
        subject_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise TokenError(MALFORMED, "Token subject is not a user id")

    return TokenClaims(
        subject_id=subject_id,
        role=role,
        issued_at=_from_epoch(payload["iat"]),
        expires_at=_from_epoch(payload["exp"]),
        jti=str(payload["jti"]),
    )


def is_revoked(jti: str) -> bool:
    return db.session.query(RevokedToken.id).filter_by(jti=jti).first() is not None


def verify(token: str | None) -> TokenClaims:
    """
    Verify a token and return its claims.

    Raises:
        TokenError: Malformed, BadSignature, Expired or Revoked
    """
    if not token or not isinstance(token, str):
        raise TokenError(MALFORMED, "Token is empty")

    claims = _claims_from_payload(_decode(token))

    if is_revoked(claims.jti):
        raise TokenError(REVOKED, "Token has been revoked")

    return claims


def revoke(token: str) -> bool:
    """
    Add a token to the revocation set.

    Idempotent: revoking an already revoked (or already expired) token is a
    no-op and returns False. Returns True when a new revocation was stored.

    Raises:
        TokenError: Malformed or BadSignature (unsigned tokens are never stored)
    """
    claims = _claims_from_payload(_decode(token, verify_exp=False))

    if claims.expires_at <= utcnow():
        return False

    if is_revoked(claims.jti):
        return False

    db.session.add(RevokedToken(
        jti=claims.jti,
        user_id=claims.subject_id,
        revoked_at=utcnow(),
        expires_at=claims.expires_at,
    ))
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent logout with the same token already stored it
        db.session.rollback()
        return False
    return True


def cleanup_expired_revocations() -> int:
    """
    Delete revocation records whose token has expired naturally.

    Returns count of records deleted.

    WHY: Keeps the revocation set bounded. Run periodically
    (flask maintenance cleanup-revoked-tokens).
    """
    deleted = db.session.query(RevokedToken).filter(
        RevokedToken.expires_at <= utcnow()
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
