"""
Authentication and profile endpoints.

Endpoints:
    GET  /api/v1/health    - Health check (public)
    POST /api/v1/register  - Create an account and receive a token
    POST /api/v1/login     - Exchange email/password for a token
    POST /api/v1/logout    - Revoke the presented token
    GET  /api/v1/profile   - Current user
    PUT  /api/v1/profile   - Partial update of name and/or email
"""

from __future__ import annotations

import logging
import os

from flask import Blueprint, Response, g, jsonify, request
from sqlalchemy import select

from task_api import db
from task_api.auth import issue_token, require_auth, revoke_token
from task_api.errors import AuthenticationFailure
from task_api.models import User
from task_api.payloads import (
    submitted_email,
    validate_login,
    validate_profile,
    validate_registration,
)
from task_api.resources import user_summary
from task_api.responses import ok, success

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)


def _email_in_use(email: str | None, exclude_user_id: int | None = None) -> bool:
    """Return True when another account already uses *email*."""
    if not email:
        return False
    stmt = select(User.id).where(User.email == email)
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    return db.session.scalar(stmt) is not None


@auth_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return jsonify({
        "status": "healthy",
        "service": "task-api",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "version": os.getenv("APP_VERSION", "unknown")
    }), 200


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple[Response, int]:
    """
    Register a new user account.

    Request Body (JSON):
        data.attributes.name, data.attributes.email,
        data.attributes.password, data.attributes.password_confirmation

    Returns:
        201 with the user and a bearer token, or 422 with field errors.
    """
    payload = request.get_json(silent=True)
    attributes = validate_registration(payload, _email_in_use(submitted_email(payload)))

    user = User(name=attributes["name"], email=attributes["email"])
    user.set_password(attributes["password"])
    db.session.add(user)
    db.session.commit()
    logger.info("Registered user %s", user.id)

    token = issue_token(user)
    return success("User registered successfully", {
        "user": user_summary(user),
        "token": token,
    }, 201)


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[Response, int]:
    """
    Authenticate with email and password.

    The same ``Invalid credentials`` message is used for an unknown email
    and a wrong password.

    Returns:
        200 with the user and a new token, 401 on bad credentials,
        422 when fields are missing or malformed.
    """
    email, password = validate_login(request.get_json(silent=True))
    user = db.session.scalar(select(User).where(User.email == email))
    if user is None or not user.check_password(password):
        logger.info("Failed login attempt")
        raise AuthenticationFailure("Invalid credentials")

    token = issue_token(user)
    logger.info("User %s logged in", user.id)
    return ok("Authenticated", {"user": user_summary(user), "token": token})


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout() -> tuple[Response, int]:
    """Revoke only the token used for this request."""
    revoke_token(g.token)
    return ok("Logout successful")


@auth_bp.route("/profile", methods=["GET"])
@require_auth
def show_profile() -> tuple[Response, int]:
    """Return the authenticated user."""
    return ok("Profile retrieved successfully", {"user": user_summary(g.user)})


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile() -> tuple[Response, int]:
    """
    Partially update the authenticated user's name and/or email.

    Returns:
        200 with the updated user, or 422 with field errors.
    """
    payload = request.get_json(silent=True)
    email_taken = _email_in_use(submitted_email(payload), exclude_user_id=g.user.id)
    attributes = validate_profile(payload, email_taken)

    user = g.user
    for field, value in attributes.items():
        setattr(user, field, value)
    db.session.commit()
    logger.info("Updated profile for user %s", user.id)

    return ok("Profile updated successfully", {"user": user_summary(user)})
