# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import Forbidden, Unauthorized
from .models import Role
from .services import audit_service, identity_service
from .services.access_gate import has_role


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'identity')


def require_auth(f):
    """
    Require authentication and establish the caller identity.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.identity: Identity(id, role) used for authorization decisions
    - g.token_claims: Verified token claims
    - g.token: The raw bearer token (needed for logout)

    SECURITY: Raises Unauthorized (401, generic message) if:
    - No Authorization header
    - Malformed, badly signed, expired or revoked token
    - User no longer exists or is deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        resolved = identity_service.resolve_identity(request.headers.get("Authorization"))

        g.current_user = resolved.user
        g.identity = resolved.identity
        g.token_claims = resolved.claims
        g.token = resolved.token

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles: Role):
    """
    Require the caller to hold one of roles.

    Denials are recorded as PERMISSION_DENIED security events.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                raise Unauthorized()

            if not has_role(g.identity, roles):
                audit_service.log_security_event(
                    user_id=g.identity.id,
                    event_type="PERMISSION_DENIED",
                    success=False,
                    resource=request.path,
                    action=request.method,
                    reason=f"Requires any of: {', '.join(r.value for r in roles)}",
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
                raise Forbidden()

            return f(*args, **kwargs)

        return decorated_function
    return decorator
