# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing; registration input goes through the credential validator first.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Email is unique across all users (unique index, race-safe)
- Session tokens managed separately (see token_service.py)
- Inactive users cannot authenticate
"""

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Role, User
from shopapi.time_utils import utcnow
from .credential_validator import (
    normalize_email,
    parse_date_of_birth,
    validate_registration,
)


BCRYPT_ROUNDS = 12


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash password using bcrypt.

    rounds is lowered only in tests; production hashes use BCRYPT_ROUNDS.
    """
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw compares in constant time.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def _insert_user(user: User) -> User:
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("User already exists", code="DuplicateEmail")
    return user


def register_user(data: dict, *, rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Self-registration of a customer account.

    Raises:
        ValidationError: If any registration rule fails (all problems listed)
        ConflictError: If the email is already registered (DuplicateEmail)

    SECURITY: Self-registered users are always customers. Any "role" in the
    payload is ignored.
    """
    validate_registration(data).raise_if_invalid()

    email = normalize_email(data["email"])
    if db.session.query(User).filter(db.func.lower(User.email) == email.lower()).first():
        raise ConflictError("User already exists", code="DuplicateEmail")

    user = User(
        email=email,
        password_hash=hash_password(data["password"], rounds=rounds),
        role=Role.CUSTOMER.value,
        first_name=(data.get("first_name") or "").strip() or None,
        last_name=(data.get("last_name") or "").strip() or None,
        phone=data["phone"].strip(),
        date_of_birth=parse_date_of_birth(data["date_of_birth"]),
    )
    return _insert_user(user)


def create_user(
    email: str,
    password: str,
    phone: str,
    date_of_birth: str,
    role: str = Role.CUSTOMER.value,
    first_name: str | None = None,
    last_name: str | None = None,
    *,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Create a user with an explicit role (CLI / administrative bootstrap).

    Runs the same validation as self-registration.
    """
    if Role.parse(role) is None:
        raise ValidationError(
            f"Invalid role '{role}'. Must be one of: {', '.join(r.value for r in Role)}",
            code="InvalidRole",
        )
    user = register_user(
        {
            "email": email,
            "password": password,
            "phone": phone,
            "date_of_birth": date_of_birth,
            "first_name": first_name,
            "last_name": last_name,
        },
        rounds=rounds,
    )
    if role != Role.CUSTOMER.value:
        user.role = role
        db.session.commit()
    return user


def authenticate(email: str, password: str, role: Role | None = None) -> User | None:
    """
    Authenticate user with email and password.

    If role is given, only users holding that role can authenticate
    (admin login).

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    query = db.session.query(User).filter(
        db.func.lower(User.email) == email.strip().lower(),
        User.is_active.is_(True),
    )
    if role is not None:
        query = query.filter(User.role == role.value)

    user = query.first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
