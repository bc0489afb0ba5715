"""
Error taxonomy and JSON error handlers for the Task API.

Every error response shares one envelope::

    {"message": str, "status": int, "errors": {...}?, "debug": {...}?}

Handlers are registered on the application rather than a blueprint so
that routing failures (unknown URL, wrong method) are rendered the same
way as errors raised by the views.

Key Concepts Demonstrated:
- Exception classes carrying their own HTTP status and log level
- Ownership mismatches reported as plain 404s
- Request-context logging with credentials redacted
- Debug details gated behind the ``API_DEBUG`` setting
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from flask import Flask, Response, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, MethodNotAllowed
from werkzeug.exceptions import NotFound as RouteNotFound

from task_api import db

logger = logging.getLogger(__name__)

HIDDEN = "***HIDDEN***"
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-csrf-token"})
SENSITIVE_FIELDS = frozenset(
    {"password", "password_confirmation", "current_password", "token", "api_key"}
)


# =====================================================================
# Exception Taxonomy
# =====================================================================


class ApiError(Exception):
    """
    Base class for errors that map directly onto an HTTP response.

    Args:
        message: Human-readable message placed in the envelope.
        status_code: HTTP status code; subclasses provide a default.
        errors: Optional field-level messages keyed by request path.
    """

    status_code: int = 500
    default_message: str = "Internal server error"
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.errors = errors or {}


class ValidationFailure(ApiError):
    """Request payload failed validation (422)."""

    status_code = 422
    default_message = "The given data was invalid."
    log_level = logging.INFO


class AuthenticationFailure(ApiError):
    """Missing, malformed, expired or revoked bearer token (401)."""

    status_code = 401
    default_message = "Unauthenticated."
    log_level = logging.WARNING


class NotFound(ApiError):
    """The requested resource does not exist (404)."""

    status_code = 404
    default_message = "Resource not found."
    log_level = logging.WARNING


class AuthorizationOpacity(NotFound):
    """
    The resource exists but belongs to someone else.

    Rendered exactly like :class:`NotFound` so callers cannot probe for
    other users' resources; only the log record tells the two apart.
    """


# =====================================================================
# Redaction Helpers
# =====================================================================


def sanitize_headers(headers: Any) -> dict[str, str]:
    """Return a plain dict of request headers with credentials hidden."""
    sanitized = {}
    for key, value in dict(headers).items():
        sanitized[key] = HIDDEN if key.lower() in SENSITIVE_HEADERS else value
    return sanitized


def sanitize_input(payload: Any) -> Any:
    """Recursively replace sensitive fields in a decoded JSON body."""
    if isinstance(payload, dict):
        return {
            key: HIDDEN if str(key).lower() in SENSITIVE_FIELDS else sanitize_input(value)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [sanitize_input(item) for item in payload]
    return payload


def _request_context(status_code: int) -> dict[str, Any]:
    """Collect the request details attached to every error log record."""
    user = g.get("user")
    return {
        "status_code": status_code,
        "method": request.method,
        "url": request.url,
        "ip": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
        "user_id": getattr(user, "id", None),
        "headers": sanitize_headers(request.headers),
        "input": sanitize_input(request.get_json(silent=True)),
    }


# =====================================================================
# Response Rendering
# =====================================================================


def _debug_details(error: BaseException) -> dict[str, Any]:
    frames = traceback.extract_tb(error.__traceback__)
    last_frame = frames[-1] if frames else None
    return {
        "exception": f"{type(error).__module__}.{type(error).__qualname__}",
        "file": last_frame.filename if last_frame else None,
        "line": last_frame.lineno if last_frame else None,
        "trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }


def _render(
    error: BaseException,
    message: str,
    status_code: int,
    log_level: int,
    errors: dict[str, list[str]] | None = None,
) -> tuple[Response, int]:
    logger.log(
        log_level,
        "API exception occurred: %s: %s | context=%s",
        type(error).__name__,
        error,
        _request_context(status_code),
    )

    body: dict[str, Any] = {"message": message, "status": status_code}
    if errors:
        body["errors"] = errors
    if current_app.config.get("API_DEBUG"):
        body["debug"] = _debug_details(error)
    return jsonify(body), status_code


def handle_api_error(error: ApiError) -> tuple[Response, int]:
    """Render any :class:`ApiError` subclass."""
    return _render(error, error.message, error.status_code, error.log_level, error.errors)


def handle_http_exception(error: HTTPException) -> tuple[Response, int]:
    """Render Werkzeug routing errors in the API envelope."""
    if isinstance(error, RouteNotFound):
        message = "Endpoint not found."
    elif isinstance(error, MethodNotAllowed):
        message = "Method not allowed."
    else:
        message = error.description or "HTTP error occurred."
    return _render(error, message, error.code or 500, logging.WARNING)


def handle_unexpected_error(error: Exception) -> tuple[Response, int]:
    """Render anything unhandled as a 500 without leaking internals."""
    db.session.rollback()
    if isinstance(error, SQLAlchemyError):
        message = "Database error occurred."
    elif current_app.config.get("API_DEBUG"):
        message = str(error) or "An error occurred."
    else:
        message = "An unexpected error occurred."
    return _render(error, message, 500, logging.ERROR)


def register_error_handlers(app: Flask) -> None:
    """Attach the JSON error handlers to *app*."""
    app.register_error_handler(ApiError, handle_api_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected_error)
