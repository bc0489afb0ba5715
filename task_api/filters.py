"""
Query-string filtering and sorting for task listings.

Filters arrive either as ``filter[key]=value`` or, for backwards
compatibility, as bare ``key=value`` parameters. Each recognised key
maps to one predicate-building function in :data:`PREDICATES`; the
functions are applied in turn to a SQLAlchemy ``Select`` and therefore
combine with AND. Unknown keys are dropped, and values that cannot be
interpreted (bad dates, non-numeric ids) turn into a predicate that
matches nothing instead of an error.

Example::

    GET /api/v1/tasks?filter[status]=pending,completed&filter[title]=*report*&sort=-dueDate

Key Concepts Demonstrated:
- Static dispatch table from filter key to predicate function
- Wildcard ``LIKE`` search with escaped user input
- Whole-day date ranges that work on any SQL backend
- Allow-listed sort columns with a deterministic tie-breaker
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import Select, false, or_
from sqlalchemy.orm import selectinload

from task_api.models import Task
from task_api.payloads import parse_date

FILTER_PARAM = re.compile(r"^filter\[(?P<key>[A-Za-z_]+)\]$")

# Largest value a 64-bit SQL INTEGER column can hold
MAX_SQL_INTEGER = 2**63 - 1

# Public sort name -> Task column attribute
SORTABLE: dict[str, str] = {
    "title": "title",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

Predicate = Callable[[Select, str], Select]


# -----------------------------------------------------------------------------
# Value helpers
# -----------------------------------------------------------------------------

def _split(value: str) -> list[str]:
    """Split a comma-separated parameter, dropping blank entries."""
    return [part.strip() for part in value.split(",") if part.strip()]


def like_pattern(value: str) -> str:
    """Translate ``*`` wildcards to SQL ``%``, escaping literal ``%`` and ``_``."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "%")


def date_bounds(value: str) -> tuple[date, date] | None:
    """
    Parse ``day`` or ``start,end`` into an inclusive pair of dates.

    Returns ``None`` when any part is not a valid date.
    """
    parts = [part.strip() for part in value.split(",")]
    if len(parts) > 1:
        start, end = parse_date(parts[0]), parse_date(parts[1])
    else:
        start = end = parse_date(parts[0])
    if start is None or end is None:
        return None
    return start, end


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


# -----------------------------------------------------------------------------
# Predicates
# -----------------------------------------------------------------------------

def _status(stmt: Select, value: str) -> Select:
    return stmt.where(Task.status.in_(_split(value)))


def _priority(stmt: Select, value: str) -> Select:
    return stmt.where(Task.priority.in_(_split(value)))


def _title(stmt: Select, value: str) -> Select:
    return stmt.where(Task.title.like(like_pattern(value), escape="\\"))


def _description(stmt: Select, value: str) -> Select:
    return stmt.where(Task.description.like(like_pattern(value), escape="\\"))


def _search(stmt: Select, value: str) -> Select:
    pattern = like_pattern(value)
    return stmt.where(or_(
        Task.title.like(pattern, escape="\\"),
        Task.description.like(pattern, escape="\\"),
    ))


def _due_date(stmt: Select, value: str) -> Select:
    bounds = date_bounds(value)
    if bounds is None:
        return stmt.where(false())
    start, end = bounds
    return stmt.where(Task.due_date.between(start, end))


def _timestamp_predicate(attribute: str) -> Predicate:
    """Build a whole-day predicate for a ``DateTime`` column."""

    def predicate(stmt: Select, value: str) -> Select:
        bounds = date_bounds(value)
        if bounds is None:
            return stmt.where(false())
        start, end = bounds
        column = getattr(Task, attribute)
        stmt = stmt.where(column >= _start_of_day(start))
        if end < date.max:
            stmt = stmt.where(column < _start_of_day(end + timedelta(days=1)))
        return stmt

    return predicate


def _due_before(stmt: Select, value: str) -> Select:
    limit = parse_date(value)
    if limit is None:
        return stmt.where(false())
    return stmt.where(Task.due_date <= limit)


def _parse_id(part: str) -> int | None:
    """Return *part* as a storable integer id, or ``None``."""
    if not (part.isascii() and part.isdigit()) or len(part) > len(str(MAX_SQL_INTEGER)):
        return None
    number = int(part)
    return number if number <= MAX_SQL_INTEGER else None


def _user_id(stmt: Select, value: str) -> Select:
    ids = [number for number in map(_parse_id, _split(value)) if number is not None]
    if not ids:
        return stmt.where(false())
    return stmt.where(Task.user_id.in_(ids))


def _include(stmt: Select, value: str) -> Select:
    # Relation loading only; never narrows the rows.
    if "user" in [part.lower() for part in _split(value)]:
        return stmt.options(selectinload(Task.user))
    return stmt


PREDICATES: dict[str, Predicate] = {
    "status": _status,
    "priority": _priority,
    "title": _title,
    "description": _description,
    "search": _search,
    "dueDate": _due_date,
    "createdAt": _timestamp_predicate("created_at"),
    "updatedAt": _timestamp_predicate("updated_at"),
    "dueBefore": _due_before,
    "userId": _user_id,
    "include": _include,
}


# -----------------------------------------------------------------------------
# Filter object
# -----------------------------------------------------------------------------

class TaskFilter:
    """
    Filters and sort order parsed from one listing request.

    Args:
        filters: Mapping of filter key to raw string value. Keys with no
            entry in :data:`PREDICATES` are ignored.
        sort: Raw ``sort`` parameter, e.g. ``"-dueDate,title"``.
    """

    def __init__(self, filters: Mapping[str, str] | None = None, sort: str | None = None) -> None:
        self.filters = {key: value for key, value in (filters or {}).items() if key in PREDICATES}
        self.sort = sort or ""

    @classmethod
    def from_query_args(cls, args: Mapping[str, str]) -> "TaskFilter":
        """
        Collect filters from request query arguments.

        Bare parameters are read first and ``filter[...]`` parameters
        second, so the bracket form wins when both name the same key.
        """
        filters: dict[str, str] = {}
        for key in args:
            if key in PREDICATES:
                filters[key] = args[key]
        for key in args:
            match = FILTER_PARAM.match(key)
            if match and match.group("key") in PREDICATES:
                filters[match.group("key")] = args[key]
        return cls(filters, args.get("sort"))

    def apply_filters(self, stmt: Select) -> Select:
        """AND every recognised predicate into *stmt*."""
        for key, value in self.filters.items():
            stmt = PREDICATES[key](stmt, value)
        return stmt

    def sort_columns(self) -> list[tuple[str, bool]]:
        """Return ``(column name, descending)`` pairs for allow-listed sort keys."""
        columns = []
        for token in _split(self.sort):
            descending = token.startswith("-")
            name = token[1:] if descending else token
            column = SORTABLE.get(name)
            if column is not None:
                columns.append((column, descending))
        return columns

    def apply_sort(self, stmt: Select) -> Select:
        """Order by the requested columns, then by id for stable pages."""
        for column_name, descending in self.sort_columns():
            column = getattr(Task, column_name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        return stmt.order_by(Task.id.asc())

    def apply(self, stmt: Select) -> Select:
        return self.apply_sort(self.apply_filters(stmt))
