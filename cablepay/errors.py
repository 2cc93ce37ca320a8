"""
Error taxonomy shared by services and routes.

Services raise these; the handlers registered in ``register_error_handlers``
turn them into JSON responses shaped like::

    {"error": "<slug>", "code": <http status>, "message": "...", ...extra}
"""
from typing import Any, Dict, Optional

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class ServiceError(Exception):
    status_code = 500
    error = "internal_error"
    default_message = "Internal server error."

    def __init__(self, message: Optional[str] = None, *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "code": self.status_code, "message": self.message, **self.extra}


class ValidationError(ServiceError):
    status_code = 400
    error = "validation_error"
    default_message = "Invalid input."

    def __init__(self, message: Optional[str] = None, *, errors: Optional[Dict[str, str]] = None,
                 extra: Optional[Dict[str, Any]] = None):
        extra = dict(extra or {})
        if errors:
            extra["errors"] = errors
        super().__init__(message, extra=extra)
        self.errors = errors or {}


class Unauthorized(ServiceError):
    status_code = 401
    error = "unauthorized"
    default_message = "Authentication required."


class CustomerInactive(ServiceError):
    status_code = 403
    error = "inactive"
    default_message = "This STB is currently inactive. Please contact the office."


class NotFound(ServiceError):
    status_code = 404
    error = "not_found"
    default_message = "Not found."


class Conflict(ServiceError):
    status_code = 409
    error = "conflict"
    default_message = "Conflict."


class SignatureInvalid(ServiceError):
    status_code = 400
    error = "signature_invalid"
    default_message = "Payment verification failed. Invalid signature."


class ForeignKeyViolation(ServiceError):
    status_code = 500
    error = "foreign_key_violation"
    default_message = "Referenced customer does not exist."


class DuplicatePayment(Conflict):
    error = "duplicate_payment"
    default_message = "This payment has already been recorded."


class RecordingFailed(ServiceError):
    status_code = 500
    error = "recording_failed"
    default_message = "Payment received but recording failed. Contact support."

    def __init__(self, message: Optional[str] = None, *, stage: str = "", extra: Optional[Dict[str, Any]] = None):
        super().__init__(message, extra=extra)
        self.stage = stage


class Misconfiguration(ServiceError):
    status_code = 500
    error = "misconfigured"
    default_message = "Service is not configured."


class UpstreamFailure(ServiceError):
    status_code = 502
    error = "upstream_failure"
    default_message = "Upstream service unavailable."


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def _service_error(e: ServiceError):
        if e.status_code >= 500:
            app.logger.error("%s: %s", e.error, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def _store_error(e):
        # Never leak driver/SQL detail to callers
        app.logger.exception("store_error")
        from cablepay.extensions import db
        db.session.rollback()
        return jsonify({"error": "internal_error", "code": 500, "message": "Internal server error."}), 500

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        slug = (e.name or "error").lower().replace(" ", "_")
        payload = {"error": slug, "code": e.code, "message": e.description}
        headers = {}
        retry_after = getattr(e, "retry_after", None)
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
        return jsonify(payload), e.code, headers

    @app.errorhandler(Exception)
    def _unhandled(e):
        app.logger.exception("unhandled_error")
        return jsonify({"error": "internal_error", "code": 500, "message": "Internal server error."}), 500
