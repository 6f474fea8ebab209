# backend/shopapi/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shop.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shop.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens (JWT)
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-me-0123456789abcdef")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRES_IN = _env_int("JWT_EXPIRES_IN", 7 * 24 * 60 * 60)  # seconds

    # Login throttling
    LOGIN_MAX_FAILED_ATTEMPTS = _env_int("LOGIN_MAX_FAILED_ATTEMPTS", 5)
    LOGIN_LOCKOUT_MINUTES = _env_int("LOGIN_LOCKOUT_MINUTES", 15)

    # Order listing
    ORDERS_DEFAULT_PAGE_SIZE = _env_int("ORDERS_DEFAULT_PAGE_SIZE", 20)
    ORDERS_MAX_PAGE_SIZE = _env_int("ORDERS_MAX_PAGE_SIZE", 100)

    # Payment gateway (Stripe)
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_WEBHOOK_TOLERANCE = _env_int("STRIPE_WEBHOOK_TOLERANCE", 300)
    PAYMENT_GATEWAY_TIMEOUT = _env_int("PAYMENT_GATEWAY_TIMEOUT", 10)
    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "inr")

    # Document uploads (storage itself is handled outside this service)
    MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES
    ALLOWED_UPLOAD_TYPES = tuple(
        t.strip() for t in os.environ.get(
            "ALLOWED_UPLOAD_TYPES", "image/jpeg,image/png,application/pdf"
        ).split(",") if t.strip()
    )

    CORS_ALLOWED_ORIGINS = tuple(
        o.strip() for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
        ).split(",") if o.strip()
    )
