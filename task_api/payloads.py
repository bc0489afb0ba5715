"""
Request payload mapping and validation.

Write endpoints accept JSON:API-style bodies::

    {"data": {"attributes": {...},
              "relationships": {"user": {"data": {"id": 1}}}}}

Each endpoint declares a list of ``(source path, target field)`` pairs;
:func:`map_attributes` flattens a body through such a list, keeping only
the paths that are actually present. Validators collect every failure
into a ``{dotted.path: [messages]}`` mapping and raise
:class:`~task_api.errors.ValidationFailure` once at the end.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from enum import Enum
from typing import Any

from email_validator import EmailNotValidError, validate_email

from task_api.errors import ValidationFailure
from task_api.models import TaskPriority, TaskStatus

MISSING = object()

# Values under these keys keep their surrounding whitespace
UNTRIMMED_FIELDS = frozenset({"password", "password_confirmation", "current_password"})

TASK_ATTRIBUTE_MAP: tuple[tuple[str, str], ...] = (
    ("data.attributes.title", "title"),
    ("data.attributes.description", "description"),
    ("data.attributes.status", "status"),
    ("data.attributes.priority", "priority"),
    ("data.attributes.due_date", "due_date"),
    ("data.relationships.user.data.id", "user_id"),
)

PROFILE_ATTRIBUTE_MAP: tuple[tuple[str, str], ...] = (
    ("data.attributes.name", "name"),
    ("data.attributes.email", "email"),
)

REGISTRATION_ATTRIBUTE_MAP: tuple[tuple[str, str], ...] = PROFILE_ATTRIBUTE_MAP + (
    ("data.attributes.password", "password"),
)

STATUS_MESSAGE = "The status value is invalid. Please use pending, in_progress, or completed."
PRIORITY_MESSAGE = "The priority value is invalid. Please use low, medium, or high."


class TaskWriteMode(Enum):
    """Which task write is being validated."""

    STORE = "store"
    REPLACE = "replace"
    UPDATE = "update"


# -----------------------------------------------------------------------------
# Path helpers
# -----------------------------------------------------------------------------

def get_path(payload: Any, path: str) -> Any:
    """Return the value at dotted *path* in *payload*, or ``MISSING``."""
    current = payload
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return MISSING
        current = current[key]
    return current


def map_attributes(payload: Any, attribute_map: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """
    Flatten *payload* through a declarative ``(path, field)`` list.

    Paths absent from the payload are skipped, so the result can be used
    directly for partial updates.
    """
    attributes = {}
    for path, field in attribute_map:
        value = get_path(payload, path)
        if value is not MISSING:
            attributes[field] = value
    return attributes


def normalize_input(payload: Any, _key: str | None = None) -> Any:
    """Trim strings and turn empty strings into ``None``, recursively."""
    if isinstance(payload, dict):
        return {key: normalize_input(value, str(key)) for key, value in payload.items()}
    if isinstance(payload, list):
        return [normalize_input(item) for item in payload]
    if isinstance(payload, str) and _key not in UNTRIMMED_FIELDS:
        stripped = payload.strip()
        return stripped or None
    return payload


def parse_date(value: Any) -> date | None:
    """
    Parse ``YYYY-MM-DD`` (or a full ISO-8601 datetime) into a date.

    Returns ``None`` for anything that cannot be parsed.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def _label(path: str) -> str:
    return path.rsplit(".", 1)[-1].replace("_", " ")


# -----------------------------------------------------------------------------
# Field rules
# -----------------------------------------------------------------------------

class _Errors(dict):
    """``{path: [messages]}`` accumulator."""

    def add(self, path: str, message: str) -> None:
        self.setdefault(path, []).append(message)


def _check_string(
    errors: _Errors,
    payload: Any,
    path: str,
    *,
    required: bool = False,
    sometimes: bool = False,
    min_length: int | None = None,
    max_length: int | None = None,
    choices: list[str] | None = None,
    choice_message: str | None = None,
) -> None:
    """
    Validate one string field.

    ``required`` fails when the field is absent or null. ``sometimes``
    fails only when the field is present but null (partial updates).
    """
    label = _label(path)
    value = get_path(payload, path)
    if value is MISSING:
        if required:
            errors.add(path, f"The {label} field is required.")
        return
    if value is None:
        if required or sometimes:
            errors.add(path, f"The {label} field is required.")
        return
    if not isinstance(value, str):
        errors.add(path, f"The {label} field must be a string.")
        return
    if min_length is not None and len(value) < min_length:
        errors.add(path, f"The {label} must be at least {min_length} characters.")
    if max_length is not None and len(value) > max_length:
        errors.add(path, f"The {label} may not be greater than {max_length} characters.")
    if choices is not None and value not in choices:
        errors.add(path, choice_message or f"The selected {label} is invalid.")


def _check_date(errors: _Errors, payload: Any, path: str, *, required: bool, sometimes: bool) -> None:
    label = _label(path)
    value = get_path(payload, path)
    if value is MISSING:
        if required:
            errors.add(path, f"The {label} field is required.")
        return
    if value is None:
        if required or sometimes:
            errors.add(path, f"The {label} field is required.")
        return
    if parse_date(value) is None:
        errors.add(path, f"The {label} is not a valid date.")


def _check_integer(errors: _Errors, payload: Any, path: str, *, required: bool) -> None:
    value = get_path(payload, path)
    if value is MISSING or value is None:
        if required:
            errors.add(path, "The user id field is required.")
        return
    if isinstance(value, bool) or not isinstance(value, int):
        errors.add(path, "The user id must be an integer.")


def _check_email(errors: _Errors, payload: Any, path: str) -> None:
    value = get_path(payload, path)
    if not isinstance(value, str) or path in errors:
        return
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        errors.add(path, f"The {_label(path)} must be a valid email address.")


# -----------------------------------------------------------------------------
# Endpoint validators
# -----------------------------------------------------------------------------

def validate_task_payload(payload: Any, mode: TaskWriteMode) -> dict[str, Any]:
    """
    Validate a task write and return the flattened model attributes.

    Args:
        payload: The decoded JSON body.
        mode: ``STORE`` (title required), ``REPLACE`` (everything
            required) or ``UPDATE`` (everything optional but not blank).

    Returns:
        Mapping of model field to cleaned value; ``due_date`` is parsed
        into a :class:`datetime.date`.

    Raises:
        ValidationFailure: With field-level messages.
    """
    payload = normalize_input(payload or {})
    errors = _Errors()

    replace = mode is TaskWriteMode.REPLACE
    update = mode is TaskWriteMode.UPDATE

    _check_string(errors, payload, "data.attributes.title",
                  required=not update, sometimes=update, max_length=255)
    _check_string(errors, payload, "data.attributes.description",
                  required=replace, sometimes=update)
    _check_string(errors, payload, "data.attributes.status",
                  required=replace, sometimes=update,
                  choices=TaskStatus.values(), choice_message=STATUS_MESSAGE)
    _check_string(errors, payload, "data.attributes.priority",
                  required=replace, sometimes=update,
                  choices=TaskPriority.values(), choice_message=PRIORITY_MESSAGE)
    _check_date(errors, payload, "data.attributes.due_date",
                required=replace, sometimes=update)
    _check_integer(errors, payload, "data.relationships.user.data.id", required=replace)

    if errors:
        raise ValidationFailure(errors=dict(errors))

    attributes = map_attributes(payload, TASK_ATTRIBUTE_MAP)
    if "due_date" in attributes:
        attributes["due_date"] = parse_date(attributes["due_date"])
    # Nullable enums fall back to the column defaults on create
    for field in ("status", "priority"):
        if field in attributes and attributes[field] is None:
            del attributes[field]
    return attributes


def validate_registration(payload: Any, email_taken: bool) -> dict[str, Any]:
    """Validate a registration body; *email_taken* comes from the caller's lookup."""
    payload = normalize_input(payload or {})
    errors = _Errors()

    _check_string(errors, payload, "data.attributes.name", required=True, max_length=255)
    _check_string(errors, payload, "data.attributes.email", required=True, max_length=255)
    _check_email(errors, payload, "data.attributes.email")
    if "data.attributes.email" not in errors and email_taken:
        errors.add("data.attributes.email", "The email has already been taken.")
    _check_string(errors, payload, "data.attributes.password", required=True, min_length=8)
    if "data.attributes.password" not in errors:
        confirmation = get_path(payload, "data.attributes.password_confirmation")
        if confirmation != get_path(payload, "data.attributes.password"):
            errors.add("data.attributes.password", "The password confirmation does not match.")

    if errors:
        raise ValidationFailure(errors=dict(errors))
    return map_attributes(payload, REGISTRATION_ATTRIBUTE_MAP)


def submitted_email(payload: Any) -> str | None:
    """Return the normalised ``data.attributes.email`` of a body, if it is a string."""
    value = get_path(normalize_input(payload or {}), "data.attributes.email")
    return value if isinstance(value, str) else None


def validate_login(payload: Any) -> tuple[str, str]:
    """Validate a flat ``{email, password}`` login body."""
    payload = normalize_input(payload or {})
    errors = _Errors()

    _check_string(errors, payload, "email", required=True)
    _check_email(errors, payload, "email")
    _check_string(errors, payload, "password", required=True)

    if errors:
        raise ValidationFailure(errors=dict(errors))
    return payload["email"], payload["password"]


def validate_profile(payload: Any, email_taken: bool) -> dict[str, Any]:
    """
    Validate a partial profile update.

    Only ``name`` and ``email`` are accepted; either may be omitted.
    *email_taken* must already exclude the caller's own row.
    """
    payload = normalize_input(payload or {})
    errors = _Errors()

    _check_string(errors, payload, "data.attributes.name",
                  sometimes=True, min_length=2, max_length=255)
    _check_string(errors, payload, "data.attributes.email",
                  sometimes=True, min_length=5, max_length=255)
    _check_email(errors, payload, "data.attributes.email")
    if "data.attributes.email" not in errors and email_taken:
        errors.add("data.attributes.email", "The email has already been taken.")

    if errors:
        raise ValidationFailure(errors=dict(errors))
    return map_attributes(payload, PROFILE_ATTRIBUTE_MAP)
