# Overview: Error taxonomy for the API and the JSON envelope they are rendered into.

"""
API Error Taxonomy

Every failure path in the service layer raises one of the ApiError
subclasses below. Routes never build error responses by hand: the handlers
registered in register_error_handlers() render each error into the uniform
envelope:

    {"status": "error", "code": "<ErrorKind>", "message": "...", "errors": [...]}

HTTP STATUS MAPPING:
- ValidationError        -> 400 (message surfaced verbatim)
- InvalidSignature       -> 400 (never retried, logged for audit)
- Unauthorized           -> 401 (generic message only)
- Forbidden              -> 403 (generic message only)
- NotFound               -> 404
- ConflictError          -> 409 (InvalidTransition, AlreadyProcessed, IntentMismatch)
- TooManyAttempts        -> 429
- WebhookProcessingError -> 500 (gateway is expected to redeliver)
- PaymentGatewayError    -> 502
- DatabaseUnavailable    -> 503
- UpstreamTimeout        -> 504
"""

from __future__ import annotations

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for errors that are rendered to the caller."""

    http_status = 500
    code = "InternalError"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: list | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        self.details = details or []

    def to_dict(self) -> dict:
        body = {"status": "error", "code": self.code, "message": self.message}
        if self.details:
            body["errors"] = self.details
        return body


# =============================================================================
# 400 - CLIENT INPUT
# =============================================================================

class ValidationError(ApiError):
    """400-level input problem."""
    http_status = 400
    code = "ValidationError"
    default_message = "Invalid request"


class InvalidSignature(ApiError):
    http_status = 400
    code = "InvalidSignature"
    default_message = "Invalid webhook signature"


# =============================================================================
# 401 / 403 - IDENTITY AND AUTHORIZATION
# =============================================================================

class Unauthorized(ApiError):
    """
    Authentication failure.

    SECURITY: The message is always generic. The failure kind (expired,
    revoked, bad signature, unknown user) is never exposed to the caller.
    """
    http_status = 401
    code = "Unauthorized"
    default_message = "Not authorized to access this route"


class Forbidden(ApiError):
    http_status = 403
    code = "Forbidden"
    default_message = "Access denied"


# =============================================================================
# 404 / 409 - RESOURCE STATE
# =============================================================================

class NotFound(ApiError):
    http_status = 404
    code = "NotFound"
    default_message = "Resource not found"


class ConflictError(ApiError):
    """409-level business rule conflict (e.g., illegal status transition)."""
    http_status = 409
    code = "Conflict"
    default_message = "Request conflicts with the current resource state"


class TooManyAttempts(ApiError):
    http_status = 429
    code = "TooManyAttempts"
    default_message = "Too many failed attempts, try again later"

    def __init__(self, message: str | None = None, *, retry_after_seconds: int | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.retry_after_seconds is not None:
            body["retry_after_seconds"] = self.retry_after_seconds
        return body


# =============================================================================
# 5xx - UPSTREAM AND PROCESSING
# =============================================================================

class WebhookProcessingError(ApiError):
    http_status = 500
    code = "WebhookProcessingError"
    default_message = "Webhook processing failed, delivery may be retried"


class UpstreamError(ApiError):
    http_status = 502
    code = "UpstreamError"
    default_message = "Upstream service failure"


class PaymentGatewayError(UpstreamError):
    code = "PaymentGatewayError"
    default_message = "Payment gateway error"


class UpstreamTimeout(UpstreamError):
    http_status = 504
    code = "UpstreamTimeout"
    default_message = "Upstream service timed out"


class DatabaseUnavailable(UpstreamError):
    http_status = 503
    code = "DatabaseUnavailable"
    default_message = "Database temporarily unavailable, try again"


# =============================================================================
# RESPONSE ENVELOPE
# =============================================================================

def success(data=None, status: int = 200, message: str | None = None, **extra):
    """Render the success envelope used by every route."""
    body = {"status": "success"}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def json_body() -> dict:
    """
    Parsed JSON request body.

    A missing or unparseable body reads as {}; any JSON value other than an
    object is rejected with InvalidBody.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="InvalidBody")
    return data


def register_error_handlers(app) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({
            "status": "error",
            "code": error.name.replace(" ", ""),
            "message": error.description,
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        current_app.logger.exception("Unhandled error")
        return jsonify({
            "status": "error",
            "code": "InternalError",
            "message": "Internal server error",
        }), 500
