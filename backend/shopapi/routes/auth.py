# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/shopapi/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Registration input validated (email, password strength, phone, date of birth)
- Login throttling to prevent brute-force attacks
- Signed, expiring session tokens (JWT)
- Server-side revocation on logout
"""

from flask import Blueprint, current_app, request, g

from ..decorators import require_auth, require_roles
from ..errors import TooManyAttempts, Unauthorized, ValidationError, json_body, success
from ..models import Role
from ..services import audit_service, auth_service, login_throttle_service, token_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _token_response(user, status: int = 200, message: str | None = None):
    token = token_service.issue(user.id, user.role)
    return success({"user": user.to_dict()}, status=status, message=message, token=token)


@auth_bp.post("/register")
def register_route():
    """
    Self-register a customer account.

    Request body:
    {
        "email": "asha@shopmail.in",
        "password": "Str0ng!Pass",
        "phone": "+919876543210",
        "date_of_birth": "1990-04-12",
        "first_name": "Asha",   (optional)
        "last_name": "Rao"      (optional)
    }

    Returns:
        201: User created, token issued
        400: Validation failed (every problem listed in "errors")
        409: Email already registered
    """
    data = json_body()
    user = auth_service.register_user(data)
    return _token_response(user, status=201)


def _login(role: Role | None, resource: str):
    data = json_body()
    email = data.get("email")
    password = data.get("password")

    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise ValidationError("Please provide email and password", code="MissingField")

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    # Check if account is locked due to too many failed attempts
    is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
    if is_locked:
        raise TooManyAttempts(
            "Account temporarily locked due to too many failed login attempts",
            retry_after_seconds=seconds_remaining,
        )

    user = auth_service.authenticate(email, password, role=role)

    if not user:
        failed_count = login_throttle_service.record_failed_attempt(
            identifier=email,
            ip_address=ip_address,
            user_agent=user_agent,
            resource=resource,
        )
        remaining = current_app.config["LOGIN_MAX_FAILED_ATTEMPTS"] - failed_count
        if remaining <= 0:
            raise TooManyAttempts("Account locked due to too many failed login attempts")
        raise Unauthorized("Invalid admin credentials" if role is Role.ADMIN else "Invalid credentials")

    login_throttle_service.record_successful_login(
        user_id=user.id,
        identifier=email,
        ip_address=ip_address,
        user_agent=user_agent,
        resource=resource,
    )
    return _token_response(user)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email and password and issue a session token.

    Token must be included in the Authorization header (Bearer) for
    protected routes.

    Returns:
        200: {"status": "success", "token": ..., "data": {"user": ...}}
        400: Missing email or password
        401: Invalid credentials
        429: Account temporarily locked
    """
    return _login(role=None, resource="/api/auth/login")


@auth_bp.post("/admin/login")
def admin_login_route():
    """Admin-only login. Non-admin accounts are rejected as invalid credentials."""
    return _login(role=Role.ADMIN, resource="/api/auth/admin/login")


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user profile (never includes password material)."""
    return success({"user": g.current_user.to_profile_dict()})


def _logout(message: str):
    token_service.revoke(g.token)
    audit_service.log_security_event(
        user_id=g.current_user.id,
        event_type="LOGOUT",
        success=True,
        resource=request.path,
        action=request.method,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )
    return success(message=message)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke the caller's session token.

    WHY: Explicit logout prevents token reuse. The token is rejected with 401
    on every later request even though it has not expired.
    """
    return _logout("Logged out successfully")


@auth_bp.post("/admin/logout")
@require_auth
@require_roles(Role.ADMIN)
def admin_logout_route():
    """Revoke an admin session token. 403 for non-admin callers."""
    return _logout("Admin logged out successfully")
