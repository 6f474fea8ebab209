# Overview: Pure validation of registration input (email, password, phone, date of birth).

"""
Credential Validator

WHY: Registration input is untrusted. All checks run before any database
work and every problem is reported at once, so a client can fix the whole
form in one round trip.

RULES:
- email, password, phone, date_of_birth are required (MissingField lists all absent fields)
- email must be a syntactically valid address (InvalidFormat)
- password: 8 chars to 72 bytes (the bcrypt input limit), upper, lower, digit,
  special character (WeakPassword lists unmet rules)
- phone: Indian mobile, optional +91/91 prefix, 10 digits starting 6-9 (InvalidPhone)
- date_of_birth: ISO date strictly in the past (InvalidDOB)
- first_name, last_name: optional strings of at most 64 characters (InvalidFormat)

No side effects: the result depends only on the input (and today's date).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

from email_validator import EmailNotValidError, validate_email

from ..errors import ValidationError
from ..time_utils import parse_iso_date, utcnow


REQUIRED_FIELDS = ("email", "password", "phone", "date_of_birth")
NAME_FIELDS = ("first_name", "last_name")
NAME_MAX_LENGTH = 64

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72
PHONE_PATTERN = re.compile(r"^(\+91|91)?[6-9]\d{9}$")

# (rule id, pattern, message)
PASSWORD_RULES = (
    ("uppercase", re.compile(r"[A-Z]"), "at least one uppercase letter"),
    ("lowercase", re.compile(r"[a-z]"), "at least one lowercase letter"),
    ("digit", re.compile(r"\d"), "at least one digit"),
    ("special", re.compile(r"[^A-Za-z0-9\s]"), "at least one special character"),
)


@dataclass
class ValidationResult:
    errors: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def codes(self) -> set[str]:
        return {e["code"] for e in self.errors}

    def add(self, code: str, field_name: str, message: str, **extra) -> None:
        entry = {"code": code, "field": field_name, "message": message}
        entry.update(extra)
        self.errors.append(entry)

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationError(
                "; ".join(e["message"] for e in self.errors),
                code=self.errors[0]["code"] if len(self.codes) == 1 else "ValidationError",
                details=self.errors,
            )


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def unmet_password_rules(password: str) -> list[str]:
    """Return the ids of every password rule the value fails."""
    unmet = []
    if len(password) < PASSWORD_MIN_LENGTH:
        unmet.append("min_length")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        unmet.append("max_length")
    for rule_id, pattern, _ in PASSWORD_RULES:
        if not pattern.search(password):
            unmet.append(rule_id)
    return unmet


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone))


def normalize_email(email: str) -> str:
    """
    Validate email syntax and return the stored form. Raises EmailNotValidError.

    Emails are stored lowercased so the unique index on users.email is
    case-insensitive.
    """
    info = validate_email(email.strip(), check_deliverability=False)
    return info.normalized.lower()


def parse_date_of_birth(value) -> date:
    """Parse a date of birth. Raises ValueError for unparseable values."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError("date_of_birth must be a string")
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValueError("date_of_birth is empty")
    return parsed


def validate_registration(data: dict | None) -> ValidationResult:
    """
    Validate registration input.

    Returns a ValidationResult collecting every problem found. Fields that
    are missing are reported once as MissingField and not format-checked.
    """
    data = data or {}
    result = ValidationResult()

    missing = [name for name in REQUIRED_FIELDS if _is_blank(data.get(name))]
    for name in missing:
        result.add("MissingField", name, f"{name} is required")

    email = data.get("email")
    if "email" not in missing:
        if not isinstance(email, str):
            result.add("InvalidFormat", "email", "Please provide a valid email address")
        else:
            try:
                normalize_email(email)
            except EmailNotValidError:
                result.add("InvalidFormat", "email", "Please provide a valid email address")

    password = data.get("password")
    if "password" not in missing:
        unmet = unmet_password_rules(password) if isinstance(password, str) else ["min_length"] + [r[0] for r in PASSWORD_RULES]
        if unmet:
            descriptions = {r[0]: r[2] for r in PASSWORD_RULES}
            descriptions["min_length"] = f"at least {PASSWORD_MIN_LENGTH} characters"
            descriptions["max_length"] = f"at most {PASSWORD_MAX_BYTES} bytes"
            result.add(
                "WeakPassword",
                "password",
                "Password must contain " + ", ".join(descriptions[r] for r in unmet),
                rules=unmet,
            )

    phone = data.get("phone")
    if "phone" not in missing:
        if not isinstance(phone, str) or not is_valid_phone(phone.strip()):
            result.add("InvalidPhone", "phone", "Please provide a valid Indian mobile number")

    for name in NAME_FIELDS:
        value = data.get(name)
        if value is not None and (not isinstance(value, str) or len(value.strip()) > NAME_MAX_LENGTH):
            result.add("InvalidFormat", name, f"{name} must be text of at most {NAME_MAX_LENGTH} characters")

    dob = data.get("date_of_birth")
    if "date_of_birth" not in missing:
        try:
            parsed = parse_date_of_birth(dob)
        except ValueError:
            result.add("InvalidDOB", "date_of_birth", "date_of_birth must be a valid date (YYYY-MM-DD)")
        else:
            if parsed >= utcnow().date():
                result.add("InvalidDOB", "date_of_birth", "date_of_birth must be in the past")

    return result
