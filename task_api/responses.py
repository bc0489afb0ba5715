"""Flat ``{message, status, data}`` envelopes used by auth and profile endpoints."""

from __future__ import annotations

from typing import Any

from flask import Response, jsonify


def success(
    message: str, data: dict[str, Any] | None = None, status_code: int = 200
) -> tuple[Response, int]:
    """Build a success envelope with an optional ``data`` payload."""
    return jsonify({
        "message": message,
        "data": data or {},
        "status": status_code,
    }), status_code


def ok(message: str, data: dict[str, Any] | None = None) -> tuple[Response, int]:
    """Shorthand for a 200 :func:`success` response."""
    return success(message, data)


def document(payload: dict[str, Any], status_code: int = 200) -> tuple[Response, int]:
    """Return a single resource document wrapped as ``{"data": ...}``."""
    return jsonify({"data": payload}), status_code
