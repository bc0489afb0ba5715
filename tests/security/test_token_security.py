"""
Security tests for bearer token handling.

A token is accepted only when its signature verifies, it has not
expired, and its ``jti`` still has a row in ``api_tokens``
(OWASP A07 - Identification and Authentication Failures).

Key SDET Concepts Demonstrated:
- Forging tokens with the wrong key and with a past expiry
- Revocation and account deletion invalidating live tokens
"""

from __future__ import annotations

import uuid

import pytest

from task_api.auth import create_token
from task_api.models import ApiToken

pytestmark = pytest.mark.security


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _stored_token(db_session, app, user, *, secret=None, expiry_hours=1) -> str:
    """Sign a token and give it a live ``api_tokens`` row."""
    jti = uuid.uuid4().hex
    token, expires_at = create_token(
        user_id=user.id,
        jti=jti,
        secret=secret or app.config["JWT_SECRET_KEY"],
        expiry_hours=expiry_hours,
    )
    db_session.session.add(ApiToken(user_id=user.id, jti=jti, name="probe", expires_at=expires_at))
    db_session.session.commit()
    return token


def test_valid_stored_token_is_accepted(client, app, db_session, user):
    token = _stored_token(db_session, app, user)

    assert client.get("/api/v1/tasks", headers=_bearer(token)).status_code == 200


def test_expired_token_is_rejected(client, app, db_session, user):
    # Arrange
    token = _stored_token(db_session, app, user, expiry_hours=-1)

    # Act
    response = client.get("/api/v1/tasks", headers=_bearer(token))

    # Assert
    assert response.status_code == 401
    assert response.get_json()["message"] == "Unauthenticated."


def test_token_signed_with_other_key_is_rejected(client, app, db_session, user):
    token = _stored_token(
        db_session, app, user, secret="attacker-controlled-secret-key-0123456789"
    )

    assert client.get("/api/v1/tasks", headers=_bearer(token)).status_code == 401


def test_signed_token_without_row_is_rejected(client, app, db_session, user):
    token, _ = create_token(
        user_id=user.id,
        jti=uuid.uuid4().hex,
        secret=app.config["JWT_SECRET_KEY"],
        expiry_hours=1,
    )

    assert client.get("/api/v1/tasks", headers=_bearer(token)).status_code == 401


def test_token_cannot_be_replayed_for_another_user(client, app, db_session, user, other_user):
    """A stored jti is bound to the user id it was issued for."""
    jti = uuid.uuid4().hex
    _, expires_at = create_token(user.id, jti, app.config["JWT_SECRET_KEY"], 1)
    db_session.session.add(ApiToken(user_id=user.id, jti=jti, name="probe", expires_at=expires_at))
    db_session.session.commit()
    forged, _ = create_token(other_user.id, jti, app.config["JWT_SECRET_KEY"], 1)

    assert client.get("/api/v1/tasks", headers=_bearer(forged)).status_code == 401


def test_revoked_token_cannot_be_reused(client, db_session, api_headers):
    client.post("/api/v1/logout", headers=api_headers)

    response = client.get("/api/v1/tasks", headers=api_headers)

    assert response.status_code == 401


def test_token_for_deleted_user_is_rejected(client, db_session, api_headers, user):
    # Arrange
    db_session.session.delete(user)
    db_session.session.commit()

    # Act
    response = client.get("/api/v1/tasks", headers=api_headers)

    # Assert
    assert response.status_code == 401


def test_successful_request_records_last_use(client, db_session, api_headers, user):
    client.get("/api/v1/profile", headers=api_headers)

    token = db_session.session.query(ApiToken).filter_by(user_id=user.id).one()
    assert token.last_used_at is not None
