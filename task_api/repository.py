"""
Owner-scoped task queries.

Every task read or write goes through an ownership constraint: either
the authenticated user (``/tasks``) or a user named in the path
(``/users/<id>/tasks``). The constraint is applied before any
caller-supplied filter, so a ``userId`` filter can only narrow the
result further.

A task that exists but belongs to someone else raises
:class:`~task_api.errors.AuthorizationOpacity`, which renders exactly
like a missing task.
"""

from __future__ import annotations

import logging
from typing import Any

from flask_sqlalchemy.pagination import Pagination
from sqlalchemy import Select, select

from task_api import db
from task_api.errors import AuthorizationOpacity, NotFound
from task_api.filters import MAX_SQL_INTEGER, TaskFilter
from task_api.models import Task, User

logger = logging.getLogger(__name__)

TASK_NOT_FOUND = "Task cannot be found"
USER_NOT_FOUND = "User not found"


def parse_page(raw: Any) -> int:
    """Read a 1-indexed page number, falling back to 1 on bad input."""
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def resolve_user(user_id: int) -> User:
    """Load the user named in the path, or raise 404 ``User not found``."""
    user = db.session.get(User, user_id) if user_id <= MAX_SQL_INTEGER else None
    if user is None:
        raise NotFound(USER_NOT_FOUND)
    return user


def require_same_user(acting_user_id: int, target_user_id: int, message: str) -> None:
    """
    Enforce that a write targets the caller's own data.

    Mismatches are reported as 404 with *message*, the same response a
    missing resource gets.
    """
    if acting_user_id != target_user_id:
        logger.warning(
            "User %s attempted to write data owned by user %s",
            acting_user_id,
            target_user_id,
        )
        raise AuthorizationOpacity(message)


def owned_tasks(owner_id: int) -> Select:
    """Base statement restricted to tasks owned by *owner_id*."""
    return select(Task).where(Task.user_id == owner_id)


def list_tasks(owner_id: int, task_filter: TaskFilter, page: int, per_page: int) -> Pagination:
    """
    Return one page of *owner_id*'s tasks after filtering and sorting.

    Pages past the end are empty rather than an error.
    """
    # Keep the SQL offset inside the INTEGER range
    page = min(page, MAX_SQL_INTEGER // per_page)
    stmt = task_filter.apply(owned_tasks(owner_id))
    return db.paginate(stmt, page=page, per_page=per_page, error_out=False)


def find_task(task_id: int, owner_id: int) -> Task:
    """
    Load one task inside the owner scope.

    Raises:
        NotFound: No task has this id.
        AuthorizationOpacity: The task belongs to another user.
    """
    task = db.session.get(Task, task_id) if task_id <= MAX_SQL_INTEGER else None
    if task is None:
        raise NotFound(TASK_NOT_FOUND)
    if task.user_id != owner_id:
        raise AuthorizationOpacity(TASK_NOT_FOUND)
    return task
