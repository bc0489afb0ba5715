"""
Shared pytest fixtures for the Task API test suite.

Fixtures follow the Arrange-Act-Assert (AAA) pattern and ensure test
isolation by creating and dropping every table around each test.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Factory fixtures for users, tokens and tasks
- Real bearer tokens issued through the same code path as /login
"""

import os
from datetime import date, timedelta
from typing import Any

import pytest
from faker import Faker

# Set testing environment before importing app
os.environ["FLASK_ENV"] = "testing"

from task_api import create_app, db
from task_api.auth import issue_token
from task_api.models import Task, TaskPriority, TaskStatus, User

# Initialize Faker for generating test data
fake = Faker()

DEFAULT_PASSWORD = "password123"


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    The 'session' scope means the same app instance is reused
    for all tests, improving performance.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """Create a test client for making HTTP requests."""
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    1. Creating all tables before the test
    2. Providing a clean database session
    3. Dropping all tables after the test
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(db_session):
    """
    Factory fixture for creating User rows.

    Example:
        def test_something(user_factory):
            user = user_factory(email="me@example.com")
    """

    def _create_user(
        name: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> User:
        user = User(name=name or fake.name(), email=email or fake.unique.email())
        user.set_password(password)
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def user(user_factory) -> User:
    """The user most tests act as."""
    return user_factory(name="Test User", email="test@example.com")


@pytest.fixture
def other_user(user_factory) -> User:
    """A second user for ownership tests."""
    return user_factory(name="Other User", email="other@example.com")


@pytest.fixture
def headers_for(db_session):
    """Factory returning JSON headers with a freshly issued bearer token."""

    def _headers(owner: User) -> dict[str, str]:
        token = issue_token(owner)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    return _headers


@pytest.fixture
def api_headers(headers_for, user) -> dict[str, str]:
    """Authenticated headers for ``user``."""
    return headers_for(user)


@pytest.fixture
def other_headers(headers_for, other_user) -> dict[str, str]:
    """Authenticated headers for ``other_user``."""
    return headers_for(other_user)


@pytest.fixture
def task_factory(db_session, user):
    """
    Factory fixture for creating Task instances.

    Tasks belong to ``user`` unless ``owner`` is given.
    """

    def _create_task(
        owner: User | None = None,
        title: str | None = None,
        description: str | None = None,
        status: str = TaskStatus.PENDING.value,
        priority: str = TaskPriority.MEDIUM.value,
        due_date: date | None = None,
    ) -> Task:
        task = Task(
            user_id=(owner or user).id,
            title=title or fake.sentence(nb_words=4),
            description=description or fake.paragraph(),
            status=status,
            priority=priority,
            due_date=due_date,
        )
        db_session.session.add(task)
        db_session.session.commit()
        return task

    return _create_task


@pytest.fixture
def sample_task(task_factory) -> Task:
    """A single task with predictable values owned by ``user``."""
    return task_factory(
        title="Sample Task",
        description="This is a sample task for testing",
        status=TaskStatus.PENDING.value,
        priority=TaskPriority.MEDIUM.value,
        due_date=date(2030, 1, 15),
    )


@pytest.fixture
def multiple_tasks(task_factory) -> list[Task]:
    """Four tasks with different statuses, priorities and due dates."""
    today = date.today()
    return [
        task_factory(
            title="High Priority Pending",
            description="Write the quarterly report",
            status=TaskStatus.PENDING.value,
            priority=TaskPriority.HIGH.value,
            due_date=today + timedelta(days=1),
        ),
        task_factory(
            title="Medium Priority In Progress",
            description="Review pull requests",
            status=TaskStatus.IN_PROGRESS.value,
            priority=TaskPriority.MEDIUM.value,
        ),
        task_factory(
            title="Low Priority Completed",
            description="Archive old tickets",
            status=TaskStatus.COMPLETED.value,
            priority=TaskPriority.LOW.value,
            due_date=today - timedelta(days=3),
        ),
        task_factory(
            title="High Priority In Progress",
            description="Prepare the report slides",
            status=TaskStatus.IN_PROGRESS.value,
            priority=TaskPriority.HIGH.value,
            due_date=today + timedelta(days=7),
        ),
    ]


# -----------------------------------------------------------------------------
# Payload Fixtures
# -----------------------------------------------------------------------------

def task_payload(**attributes: Any) -> dict[str, Any]:
    """Wrap task attributes in the ``data.attributes`` envelope."""
    user_id = attributes.pop("user_id", None)
    body: dict[str, Any] = {"data": {"attributes": attributes}}
    if user_id is not None:
        body["data"]["relationships"] = {"user": {"data": {"id": user_id}}}
    return body


@pytest.fixture
def valid_task_payload() -> dict[str, Any]:
    """A fully populated task creation body."""
    return task_payload(
        title="Test Task",
        description="This is a test task description",
        status=TaskStatus.PENDING.value,
        priority=TaskPriority.HIGH.value,
        due_date="2030-06-30",
    )


@pytest.fixture
def registration_payload() -> dict[str, Any]:
    """A valid registration body."""
    return {
        "data": {
            "attributes": {
                "name": "New User",
                "email": "new.user@example.com",
                "password": "SuperSecret123",
                "password_confirmation": "SuperSecret123",
            }
        }
    }
