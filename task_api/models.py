"""
Database models for the Task API.

This module defines SQLAlchemy models representing the data structure
of the application: users, the tasks they own, and the bearer tokens
issued to them. Serialisation to API documents lives in
``task_api.resources``; the models only expose storage-level helpers.
"""

from datetime import date, datetime, timezone
from enum import Enum

from werkzeug.security import check_password_hash, generate_password_hash

from task_api import db


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert datetime to an ISO-8601 UTC string.

    SQLite commonly returns naive datetime values even when timezone-aware
    columns are declared. For API contracts, always normalize to UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def to_date_iso(value: date | None) -> str | None:
    """Format an optional calendar date as ``YYYY-MM-DD``."""
    return value.isoformat() if value is not None else None


class TaskStatus(str, Enum):
    """Enumeration of possible task statuses."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class TaskPriority(str, Enum):
    """Enumeration of possible task priorities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class User(db.Model):
    """
    Registered user of the API.

    Passwords are never stored in plain text, only a Werkzeug hash.
    Nothing in ``task_api.resources`` reads ``password_hash``.

    Attributes:
        id: Unique identifier for the user.
        name: Display name.
        email: Unique login email address.
        password_hash: Werkzeug-generated hash of the user's password.
        created_at: Timestamp when the user registered.
        updated_at: Timestamp when the profile was last modified.
    """

    __tablename__ = "users"

    id: int = db.Column(db.Integer, primary_key=True)
    name: str = db.Column(db.String(255), nullable=False)
    # Indexed because login and registration look users up by email
    email: str = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash: str = db.Column(db.String(256), nullable=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utc_now
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now
    )

    tasks = db.relationship(
        "Task", back_populates="user", lazy="select", cascade="all, delete-orphan"
    )
    tokens = db.relationship(
        "ApiToken", back_populates="user", lazy="select", cascade="all, delete-orphan"
    )

    def set_password(self, password: str) -> None:
        """Hash and store a plain-text password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a plain-text password against the stored hash."""
        return check_password_hash(self.password_hash, password)

    def __repr__(self) -> str:
        """Return string representation of the user."""
        return f"<User {self.id}: {self.email}>"


class Task(db.Model):
    """
    Task model representing a to-do item owned by exactly one user.

    Attributes:
        id: Unique identifier for the task.
        user_id: Owning user. Every query in the API layer is scoped by it.
        title: Short title describing the task.
        description: Detailed description of the task.
        status: Current status (pending, in_progress, completed).
        priority: Task priority level (low, medium, high).
        due_date: Optional calendar deadline.
        created_at: Timestamp when the task was created.
        updated_at: Timestamp when the task was last modified.
    """

    __tablename__ = "tasks"

    id: int = db.Column(db.Integer, primary_key=True)
    user_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    title: str = db.Column(db.String(255), nullable=False)
    description: str | None = db.Column(db.Text, nullable=True)
    status: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskStatus.PENDING.value
    )
    priority: str = db.Column(
        db.String(20),
        nullable=False,
        default=TaskPriority.MEDIUM.value
    )
    due_date: date | None = db.Column(db.Date, nullable=True)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utc_now
    )
    updated_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now
    )

    user = db.relationship("User", back_populates="tasks")

    def __repr__(self) -> str:
        """Return string representation of the task."""
        return f"<Task {self.id}: {self.title}>"


class ApiToken(db.Model):
    """
    Issued bearer token.

    The JWT handed to the client carries ``jti``; the token is only
    accepted while this row exists, so deleting it revokes exactly that
    token and leaves the user's other tokens untouched.
    """

    __tablename__ = "api_tokens"

    id: int = db.Column(db.Integer, primary_key=True)
    user_id: int = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    jti: str = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name: str = db.Column(db.String(255), nullable=False)
    created_at: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utc_now
    )
    expires_at: datetime = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at: datetime | None = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", back_populates="tokens")

    def __repr__(self) -> str:
        return f"<ApiToken {self.id} for user {self.user_id}>"
