# Overview: Resolves the caller identity from a bearer token.

"""
Identity Resolver

WHY: Central authentication point. All protected routes go through
resolve_identity() (via @require_auth).

Rejects with Unauthorized when:
- No Authorization header, or not a "Bearer <token>" header
- Token malformed, badly signed, expired or revoked
- Subject no longer exists or is deactivated

SECURITY: The caller only ever sees the generic Unauthorized message. The
specific failure kind is logged server-side.

The role used for authorization is the user's current stored role, not the
role claim captured at login, so a demotion takes effect immediately.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import Unauthorized
from ..extensions import db
from ..models import User
from . import token_service
from .access_gate import Identity
from .token_service import TokenClaims, TokenError


BEARER_PREFIX = "Bearer "


@dataclass
class ResolvedIdentity:
    user: User
    claims: TokenClaims
    token: str

    @property
    def identity(self) -> Identity:
        return Identity.of(self.user)


def extract_bearer_token(authorization_header: str | None) -> str | None:
    if not authorization_header or not authorization_header.startswith(BEARER_PREFIX):
        return None
    token = authorization_header[len(BEARER_PREFIX):].strip()
    return token or None


def resolve_identity(authorization_header: str | None) -> ResolvedIdentity:
    """
    Resolve the caller from an Authorization header value.

    Raises:
        Unauthorized: For every failure (generic message)
    """
    token = extract_bearer_token(authorization_header)
    if token is None:
        raise Unauthorized()

    try:
        claims = token_service.verify(token)
    except TokenError as exc:
        current_app.logger.info("Rejected session token: %s", exc.kind)
        raise Unauthorized()

    user = db.session.get(User, claims.subject_id)
    if user is None or not user.is_active:
        current_app.logger.info("Rejected session token: subject %s unavailable", claims.subject_id)
        raise Unauthorized()

    return ResolvedIdentity(user=user, claims=claims, token=token)
