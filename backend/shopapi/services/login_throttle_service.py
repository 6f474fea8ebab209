# Overview: Service-layer operations for login throttling; counts recent failures per email.

"""
Login Throttling

WHY: Passwords can be guessed. Failed logins are counted per email address
(case-insensitive) inside a sliding window; once LOGIN_MAX_FAILED_ATTEMPTS
failures fall inside LOGIN_LOCKOUT_MINUTES, further logins for that email
are refused until the newest failure ages out of the window.

Failures are LOGIN_FAILED rows in security_events with the email stored in
the action column, so throttling needs no table of its own and the same rows
serve as the audit trail.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import SecurityEvent
from shopapi.time_utils import utcnow
from .audit_service import log_security_event


LOGIN_FAILED = "LOGIN_FAILED"
LOGIN_SUCCESS = "LOGIN_SUCCESS"


def _window() -> timedelta:
    return timedelta(minutes=current_app.config["LOGIN_LOCKOUT_MINUTES"])


def _key(identifier: str) -> str:
    return identifier.strip().lower()


def _failures_since(identifier: str, cutoff):
    return db.session.query(SecurityEvent).filter(
        SecurityEvent.event_type == LOGIN_FAILED,
        SecurityEvent.action == _key(identifier),
        SecurityEvent.occurred_at >= cutoff,
    )


def get_recent_failed_attempts(identifier: str) -> int:
    return _failures_since(identifier, utcnow() - _window()).count()


def is_account_locked(identifier: str) -> tuple[bool, int | None]:
    """
    Returns (True, seconds until unlock) while the email is locked out,
    otherwise (False, None).
    """
    now = utcnow()
    recent = _failures_since(identifier, now - _window())
    if recent.count() < current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"]:
        return False, None

    newest = recent.with_entities(func.max(SecurityEvent.occurred_at)).scalar()
    unlock_at = newest + _window()
    if unlock_at <= now:
        return False, None
    return True, max(1, int((unlock_at - now).total_seconds()))


def record_failed_attempt(
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    resource: str = "/api/auth/login",
    reason: str = "Invalid credentials",
) -> int:
    """Store one failure and return how many now fall inside the window."""
    log_security_event(
        user_id=None,
        event_type=LOGIN_FAILED,
        success=False,
        resource=resource,
        action=_key(identifier),
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    count = get_recent_failed_attempts(identifier)
    if count >= current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"]:
        current_app.logger.warning("Login locked for %s after %s failed attempts", _key(identifier), count)
    return count


def record_successful_login(
    user_id: int,
    identifier: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    resource: str = "/api/auth/login",
) -> None:
    # Earlier failures are left to age out of the window
    log_security_event(
        user_id=user_id,
        event_type=LOGIN_SUCCESS,
        success=True,
        resource=resource,
        action=_key(identifier),
        ip_address=ip_address,
        user_agent=user_agent,
    )
