"""
API tests for the nested /api/v1/users/<user_id>/tasks routes.

Reads through the nested form are scoped to the path user; writes only
succeed when the path user is the caller.
"""

import pytest

from task_api.models import Task
from tests.conftest import task_payload

pytestmark = pytest.mark.integration


class TestNestedRead:
    """Reads scoped to the path user."""

    def test_list_own_tasks(self, client, db_session, api_headers, user, multiple_tasks):
        response = client.get(f"/api/v1/users/{user.id}/tasks", headers=api_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["meta"]["total"] == 4
        assert body["meta"]["path"].endswith(f"/api/v1/users/{user.id}/tasks")

    def test_list_other_users_tasks(
        self, client, db_session, api_headers, other_user, task_factory, sample_task
    ):
        # Arrange
        task_factory(owner=other_user, title="Theirs")

        # Act
        response = client.get(f"/api/v1/users/{other_user.id}/tasks", headers=api_headers)

        # Assert
        assert response.status_code == 200
        titles = [item["attributes"]["title"] for item in response.get_json()["data"]]
        assert titles == ["Theirs"]

    def test_unknown_user(self, client, db_session, api_headers):
        response = client.get("/api/v1/users/99999/tasks", headers=api_headers)

        assert response.status_code == 404
        assert response.get_json()["message"] == "User not found"

    def test_huge_user_id(self, client, db_session, api_headers):
        response = client.get("/api/v1/users/100000000000000000000000/tasks", headers=api_headers)

        assert response.status_code == 404
        assert response.get_json()["message"] == "User not found"

    def test_show_task_under_wrong_user(
        self, client, db_session, api_headers, other_user, sample_task
    ):
        response = client.get(
            f"/api/v1/users/{other_user.id}/tasks/{sample_task.id}", headers=api_headers
        )

        assert response.status_code == 404
        assert response.get_json()["message"] == "Task cannot be found"

    def test_show_task_under_owner(self, client, db_session, api_headers, user, sample_task):
        response = client.get(
            f"/api/v1/users/{user.id}/tasks/{sample_task.id}", headers=api_headers
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == sample_task.id


class TestNestedWrite:
    """Writes through the nested routes."""

    def test_create_for_self(self, client, db_session, api_headers, user):
        response = client.post(
            f"/api/v1/users/{user.id}/tasks", json=task_payload(title="Nested"), headers=api_headers
        )

        assert response.status_code == 201
        assert response.get_json()["data"]["relationships"]["user"]["data"]["id"] == user.id

    def test_create_for_other_user_is_hidden(
        self, client, db_session, api_headers, other_user
    ):
        # Act
        response = client.post(
            f"/api/v1/users/{other_user.id}/tasks",
            json=task_payload(title="Sneaky"),
            headers=api_headers,
        )

        # Assert
        assert response.status_code == 404
        assert response.get_json()["message"] == "User not found"
        assert db_session.session.query(Task).count() == 0

    def test_create_for_missing_user(self, client, db_session, api_headers):
        response = client.post(
            "/api/v1/users/99999/tasks", json=task_payload(title="x"), headers=api_headers
        )

        assert response.status_code == 404
        assert response.get_json()["message"] == "User not found"

    def test_patch_under_owner(self, client, db_session, api_headers, user, sample_task):
        response = client.patch(
            f"/api/v1/users/{user.id}/tasks/{sample_task.id}",
            json=task_payload(priority="high"),
            headers=api_headers,
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["attributes"]["priority"] == "high"

    def test_delete_under_other_user_is_hidden(
        self, client, db_session, other_headers, user, sample_task
    ):
        response = client.delete(
            f"/api/v1/users/{user.id}/tasks/{sample_task.id}", headers=other_headers
        )

        assert response.status_code == 404
        assert response.get_json()["message"] == "Task cannot be found"
        assert db_session.session.get(Task, sample_task.id) is not None
