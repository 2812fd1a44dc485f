"""Application error types.

Each error carries the HTTP status it maps to; ``register_error_handlers``
turns them into the JSON body every endpoint uses for failures.
"""
from flask import jsonify


class HackHubError(Exception):
    """Base class for errors that are reported to the client."""
    status_code = 400

    def __init__(self, message, **payload):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        body = {"ok": False, "error": self.message}
        body.update(self.payload)
        return body


class ValidationError(HackHubError):
    """Raised when input fails validation before anything is written."""
    status_code = 400


class PermissionDenied(HackHubError):
    status_code = 403


class NotFound(HackHubError):
    status_code = 404


class Conflict(HackHubError):
    """Raised when the request clashes with existing state (duplicates, full teams)."""
    status_code = 409


class RateLimited(HackHubError):
    status_code = 429

    def __init__(self, message, retry_after=0):
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


def form_error(form):
    """Wrap WTForms errors into a ValidationError."""
    return ValidationError("Invalid input", fields=form.errors)


def register_error_handlers(app):
    @app.errorhandler(HackHubError)
    def _handle_app_error(err):
        resp = jsonify(err.to_dict())
        resp.status_code = err.status_code
        if isinstance(err, RateLimited) and err.retry_after:
            resp.headers["Retry-After"] = str(err.retry_after)
        return resp

    @app.errorhandler(401)
    def _unauthorized(err):
        return jsonify({"ok": False, "error": "Login required"}), 401

    @app.errorhandler(403)
    def _forbidden(err):
        return jsonify({"ok": False, "error": "Forbidden"}), 403

    @app.errorhandler(404)
    def _not_found(err):
        return jsonify({"ok": False, "error": "Not found"}), 404
