"""
Bearer token issuance, verification and revocation.

Tokens are HS256-signed JSON Web Tokens carrying the owning user's id
and a unique ``jti``. Every issued token also has an ``ApiToken`` row;
a token is accepted only while that row exists, which makes logout a
simple row delete that revokes exactly one token.

Token structure (claims):
    - ``user_id`` -- integer primary key of the authenticated user.
    - ``jti``     -- random token id matching ``ApiToken.jti``.
    - ``iat``     -- issued-at timestamp (UTC epoch seconds).
    - ``exp``     -- expiration timestamp (UTC epoch seconds).

Key Concepts Demonstrated:
- JWT signing and verification with the ``PyJWT`` library
- Decorator pattern for endpoint authentication (``require_auth``)
- Using ``flask.g`` to store request-scoped user identity
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import current_app, g, request
from sqlalchemy import select

from task_api import db
from task_api.errors import AuthenticationFailure
from task_api.models import ApiToken, User, utc_now

logger = logging.getLogger(__name__)

REQUIRED_TOKEN_CLAIMS = ["user_id", "jti", "iat", "exp"]


def create_token(
    user_id: int,
    jti: str,
    secret: str,
    expiry_hours: int,
    algorithm: str = "HS256",
) -> tuple[str, datetime]:
    """
    Create a signed JWT for *user_id* identified by *jti*.

    Args:
        user_id: Primary key of the authenticated user. Must be positive.
        jti: Unique token id, stored alongside the token row.
        secret: Signing key.
        expiry_hours: Number of hours from now until the token expires.
        algorithm: JWS algorithm, ``HS256`` unless configured otherwise.

    Returns:
        The compact token string and its expiry timestamp.

    Raises:
        ValueError: If *user_id* is not positive or *jti* is blank.
    """
    if int(user_id) <= 0:
        raise ValueError("user_id must be a positive integer")
    if not jti or not jti.strip():
        raise ValueError("jti must be a non-empty string")

    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=int(expiry_hours))
    payload: dict[str, Any] = {
        "user_id": int(user_id),
        "jti": jti,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=algorithm), expires_at


def verify_token(
    token: str,
    secret: str,
    algorithms: list[str] | None = None,
    leeway: int = 0,
) -> dict[str, Any] | None:
    """
    Decode and validate a JWT, returning the payload on success.

    Performs signature, expiry and required-claim checks, then validates
    that ``user_id`` is a positive integer and ``jti`` a non-empty string.

    Returns:
        The decoded payload, or ``None`` if verification fails for any
        reason.
    """
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=algorithms or ["HS256"],
            options={"require": REQUIRED_TOKEN_CLAIMS},
            leeway=leeway,
        )
    except jwt.InvalidTokenError:
        return None

    user_id = decoded.get("user_id")
    jti = decoded.get("jti")
    if not isinstance(user_id, int) or user_id <= 0:
        return None
    if not isinstance(jti, str) or not jti.strip():
        return None
    return decoded


def issue_token(user: User) -> str:
    """
    Mint a new bearer token for *user* and persist its ``ApiToken`` row.

    The row is added to the current session and committed.
    """
    jti = uuid.uuid4().hex
    token, expires_at = create_token(
        user_id=user.id,
        jti=jti,
        secret=current_app.config["JWT_SECRET_KEY"],
        expiry_hours=current_app.config["JWT_EXPIRY_HOURS"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )
    db.session.add(
        ApiToken(
            user_id=user.id,
            jti=jti,
            name=f"Api token for {user.email}",
            expires_at=expires_at,
        )
    )
    db.session.commit()
    logger.info("Issued token for user_id=%s", user.id)
    return token


def revoke_token(api_token: ApiToken) -> None:
    """Delete a single token row; the user's other tokens stay valid."""
    db.session.delete(api_token)
    db.session.commit()
    logger.info("Revoked token %s for user_id=%s", api_token.id, api_token.user_id)


def _extract_bearer_token() -> str | None:
    """Return the token from ``Authorization: Bearer <token>``, if any."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:].strip()
    return token or None


def authenticate_request() -> ApiToken:
    """
    Resolve the presented bearer token to its live ``ApiToken`` row.

    Raises:
        AuthenticationFailure: If the header is missing, the JWT does not
            verify, or the token has been revoked.
    """
    token = _extract_bearer_token()
    if token is None:
        raise AuthenticationFailure()

    payload = verify_token(
        token,
        current_app.config["JWT_SECRET_KEY"],
        algorithms=[current_app.config["JWT_ALGORITHM"]],
        leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
    )
    if payload is None:
        raise AuthenticationFailure()

    api_token = db.session.scalar(
        select(ApiToken).where(
            ApiToken.jti == payload["jti"],
            ApiToken.user_id == payload["user_id"],
        )
    )
    if api_token is None:
        raise AuthenticationFailure()
    return api_token


def require_auth(view_func: Callable[..., Any]):
    """
    Decorator that enforces Bearer-token authentication on API endpoints.

    On success the authenticated ``User`` and its ``ApiToken`` are stored
    on ``flask.g`` as ``g.user`` and ``g.token``. On failure the request
    is short-circuited with :class:`AuthenticationFailure` (401).
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        api_token = authenticate_request()
        api_token.last_used_at = utc_now()
        db.session.commit()

        g.token = api_token
        g.user = api_token.user
        return view_func(*args, **kwargs)

    return wrapper
