"""
REST API endpoints for tasks.

Every view is mounted twice: once for the authenticated user's own
tasks and once nested under a user id. Reads through the nested form
are scoped to that user; writes through it require the path user to be
the caller. Any ownership mismatch is answered with the same 404 a
missing resource gets.

Endpoints:
    GET    /api/v1/tasks                     - List my tasks
    GET    /api/v1/users/<uid>/tasks         - List a user's tasks
    POST   /api/v1/tasks                     - Create a task for me
    POST   /api/v1/users/<uid>/tasks         - Create (uid must be me)
    GET    /api/v1[/users/<uid>]/tasks/<id>  - Show a task
    PUT    /api/v1[/users/<uid>]/tasks/<id>  - Replace a task
    PATCH  /api/v1[/users/<uid>]/tasks/<id>  - Update a task
    DELETE /api/v1[/users/<uid>]/tasks/<id>  - Delete a task

Listing query parameters:
    filter[<key>] / <key>  Predicate filters, see ``task_api.filters``
    sort                   e.g. ``-dueDate,title``
    include                ``user`` embeds the owner document
    page                   1-indexed page number
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Blueprint, Response, current_app, g, jsonify, request, url_for

from task_api import db
from task_api.auth import require_auth
from task_api.errors import AuthorizationOpacity
from task_api.filters import TaskFilter
from task_api.models import Task
from task_api.payloads import TaskWriteMode, validate_task_payload
from task_api.repository import (
    TASK_NOT_FOUND,
    USER_NOT_FOUND,
    find_task,
    list_tasks as list_owned_tasks,
    parse_page,
    require_same_user,
    resolve_user,
)
from task_api.resources import ViewMode, collection_document, task_document, wants_include
from task_api.responses import document, ok

logger = logging.getLogger(__name__)

tasks_bp = Blueprint("tasks", __name__)

# Writable task columns; user_id is always derived from the owner scope
TASK_FIELDS = ("title", "description", "status", "priority", "due_date")


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _read_owner(user_id: int | None) -> int:
    """Owner scope for reads: the caller, or the existing path user."""
    if user_id is None:
        return g.user.id
    return resolve_user(user_id).id


def _write_owner(user_id: int | None, message: str) -> int:
    """Owner scope for writes: the path user must exist and be the caller."""
    if user_id is None:
        return g.user.id
    resolve_user(user_id)
    require_same_user(g.user.id, user_id, message)
    return user_id


def _check_relationship(attributes: dict[str, Any], owner_id: int, message: str) -> None:
    """Reject payloads that try to hand the task to another user."""
    requested = attributes.pop("user_id", None)
    if requested is not None and requested != owner_id:
        raise AuthorizationOpacity(message)


def _write_attributes(task: Task, attributes: dict[str, Any]) -> None:
    for field in TASK_FIELDS:
        if field in attributes:
            setattr(task, field, attributes[field])


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@tasks_bp.route("/tasks", methods=["GET"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks", methods=["GET"])
@require_auth
def list_tasks(user_id: int | None) -> tuple[Response, int]:
    """
    List tasks with filtering, sorting and pagination.

    Returns:
        Paginated collection with ``data``, ``links`` and ``meta``.
    """
    owner_id = _read_owner(user_id)
    logger.info("Listing tasks for owner %s (caller %s)", owner_id, g.user.id)

    task_filter = TaskFilter.from_query_args(request.args)
    pagination = list_owned_tasks(
        owner_id,
        task_filter,
        page=parse_page(request.args.get("page")),
        per_page=current_app.config["TASKS_PER_PAGE"],
    )
    logger.info("Found %s matching tasks", pagination.total)

    body = collection_document(
        pagination,
        path=url_for("tasks.list_tasks", user_id=user_id, _external=True),
        query=list(request.args.items(multi=True)),
        view=ViewMode.LIST,
        include_user=wants_include(task_filter.filters.get("include"), "user"),
    )
    return jsonify(body), 200


@tasks_bp.route("/tasks", methods=["POST"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks", methods=["POST"])
@require_auth
def create_task(user_id: int | None) -> tuple[Response, int]:
    """
    Create a task owned by the caller.

    Returns:
        201 with the task document, 404 when the path user is missing or
        is not the caller, 422 on validation errors.
    """
    owner_id = _write_owner(user_id, USER_NOT_FOUND)
    attributes = validate_task_payload(request.get_json(silent=True), TaskWriteMode.STORE)
    _check_relationship(attributes, owner_id, USER_NOT_FOUND)

    task = Task(user_id=owner_id)
    _write_attributes(task, attributes)
    db.session.add(task)
    db.session.commit()

    logger.info("Created task %s for user %s", task.id, owner_id)
    return document(task_document(task, ViewMode.DETAIL), 201)


@tasks_bp.route("/tasks/<int:task_id>", methods=["GET"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks/<int:task_id>", methods=["GET"])
@require_auth
def show_task(task_id: int, user_id: int | None) -> tuple[Response, int]:
    """
    Show a single task; ``include=user`` or ``filter[include]=user`` embeds the owner.

    Returns:
        The task document, or 404 when it is missing or not in scope.
    """
    task = find_task(task_id, _read_owner(user_id))
    include = TaskFilter.from_query_args(request.args).filters.get("include")
    include_user = wants_include(include, "user")
    return document(task_document(task, ViewMode.DETAIL, include_user))


@tasks_bp.route("/tasks/<int:task_id>", methods=["PUT"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks/<int:task_id>", methods=["PUT"])
@require_auth
def replace_task(task_id: int, user_id: int | None) -> tuple[Response, int]:
    """
    Replace every attribute of a task.

    All of title, description, status, priority, due_date and the
    ``data.relationships.user.data.id`` reference are required.
    """
    owner_id = _write_owner(user_id, TASK_NOT_FOUND)
    task = find_task(task_id, owner_id)
    attributes = validate_task_payload(request.get_json(silent=True), TaskWriteMode.REPLACE)
    _check_relationship(attributes, owner_id, TASK_NOT_FOUND)

    _write_attributes(task, attributes)
    db.session.commit()

    logger.info("Replaced task %s", task.id)
    return document(task_document(task, ViewMode.DETAIL))


@tasks_bp.route("/tasks/<int:task_id>", methods=["PATCH"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks/<int:task_id>", methods=["PATCH"])
@require_auth
def update_task(task_id: int, user_id: int | None) -> tuple[Response, int]:
    """Update only the attributes present in the body."""
    owner_id = _write_owner(user_id, TASK_NOT_FOUND)
    task = find_task(task_id, owner_id)
    attributes = validate_task_payload(request.get_json(silent=True), TaskWriteMode.UPDATE)
    _check_relationship(attributes, owner_id, TASK_NOT_FOUND)

    _write_attributes(task, attributes)
    db.session.commit()

    logger.info("Updated task %s", task.id)
    return document(task_document(task, ViewMode.DETAIL))


@tasks_bp.route("/tasks/<int:task_id>", methods=["DELETE"], defaults={"user_id": None})
@tasks_bp.route("/users/<int:user_id>/tasks/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id: int, user_id: int | None) -> tuple[Response, int]:
    """Delete a task owned by the caller."""
    owner_id = _write_owner(user_id, TASK_NOT_FOUND)
    task = find_task(task_id, owner_id)

    db.session.delete(task)
    db.session.commit()

    logger.info("Deleted task %s", task_id)
    return ok("Task successfully deleted")
