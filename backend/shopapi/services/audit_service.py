# Overview: Service-layer operations for the security audit log.

"""
Security Event Logging

WHY: Immutable audit trail for failed logins, permission denials, logouts,
invalid webhook signatures and order status changes. Failed logins are also
the input to login throttling.
"""

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent
from shopapi.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    event_type examples:
    - LOGIN_FAILED / LOGIN_SUCCESS
    - LOGOUT
    - PERMISSION_DENIED
    - WEBHOOK_SIGNATURE_INVALID
    - ORDER_STATUS_CHANGED

    commit=False adds the event to the caller's transaction instead of
    committing on its own.
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()

    return event


def cleanup_security_events(retention_days: int = 90) -> int:
    """Delete security events older than the retention window. Returns count deleted."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
