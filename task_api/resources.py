"""
JSON:API-style documents for tasks and users.

Key Concepts Demonstrated:
- Explicit list/detail view mode instead of inspecting the request
- Relationship stubs with links, optional side-loaded user document
- Paginated collection envelope with navigation links and meta
"""

from __future__ import annotations

from enum import Enum
from typing import Any
from urllib.parse import urlencode

from flask import url_for
from flask_sqlalchemy.pagination import Pagination

from task_api.models import Task, User, to_date_iso, to_utc_iso


class ViewMode(Enum):
    """Which attributes a task document carries."""

    LIST = "list"
    DETAIL = "detail"


def wants_include(raw: str | None, relationship: str) -> bool:
    """Return True when the comma-separated ``include`` value names *relationship*."""
    if not raw:
        return False
    requested = [part.strip().lower() for part in raw.split(",")]
    return relationship.lower() in requested


def user_summary(user: User) -> dict[str, Any]:
    """Flat user block for auth and profile envelopes."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "created_at": to_utc_iso(user.created_at),
    }


def user_document(user: User) -> dict[str, Any]:
    """Side-loaded user resource. Never includes the password hash."""
    return {
        "type": "user",
        "id": user.id,
        "attributes": {
            "name": user.name,
            "email": user.email,
            "createdAt": to_utc_iso(user.created_at),
            "updatedAt": to_utc_iso(user.updated_at),
        },
        "links": {
            "self": url_for("tasks.list_tasks", user_id=user.id, _external=True),
        },
    }


def task_document(
    task: Task, view: ViewMode = ViewMode.DETAIL, include_user: bool = False
) -> dict[str, Any]:
    """
    Project a task into a resource document.

    Args:
        task: The stored task.
        view: ``LIST`` omits ``description``, ``createdAt`` and
            ``updatedAt``; ``DETAIL`` includes them.
        include_user: Embed the owner under ``includes``.
    """
    attributes: dict[str, Any] = {
        "title": task.title,
        "status": task.status,
        "priority": task.priority,
        "dueDate": to_date_iso(task.due_date),
    }
    if view is ViewMode.DETAIL:
        attributes["description"] = task.description
        attributes["createdAt"] = to_utc_iso(task.created_at)
        attributes["updatedAt"] = to_utc_iso(task.updated_at)

    document: dict[str, Any] = {
        "type": "task",
        "id": task.id,
        "attributes": attributes,
        "relationships": {
            "user": {
                "data": {"type": "user", "id": task.user_id},
                "links": {
                    "self": url_for("tasks.list_tasks", user_id=task.user_id, _external=True),
                },
            },
        },
        "links": {
            "self": url_for("tasks.show_task", task_id=task.id, _external=True),
        },
    }
    if include_user:
        document["includes"] = [user_document(task.user)]
    return document


def _page_url(path: str, query: list[tuple[str, str]], page: int) -> str:
    params = [(key, value) for key, value in query if key != "page"]
    params.append(("page", str(page)))
    return f"{path}?{urlencode(params)}"


def collection_document(
    pagination: Pagination,
    path: str,
    query: list[tuple[str, str]],
    view: ViewMode = ViewMode.LIST,
    include_user: bool = False,
) -> dict[str, Any]:
    """
    Build a paginated collection response.

    Args:
        pagination: Page returned by ``db.paginate``.
        path: Absolute URL of the listing without a query string.
        query: Original query parameters; preserved in the page links.
        view: View mode for every item.
        include_user: Embed each task's owner.
    """
    last_page = max(pagination.pages, 1)
    count = len(pagination.items)
    offset = (pagination.page - 1) * pagination.per_page
    return {
        "data": [task_document(task, view, include_user) for task in pagination.items],
        "links": {
            "first": _page_url(path, query, 1),
            "last": _page_url(path, query, last_page),
            "prev": _page_url(path, query, pagination.page - 1) if pagination.page > 1 else None,
            "next": _page_url(path, query, pagination.page + 1) if pagination.page < last_page else None,
        },
        "meta": {
            "current_page": pagination.page,
            "per_page": pagination.per_page,
            "total": pagination.total,
            "last_page": last_page,
            "from": offset + 1 if count else None,
            "to": offset + count if count else None,
            "path": path,
        },
    }
