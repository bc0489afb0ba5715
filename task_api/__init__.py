"""
Flask application factory module.

This module creates and configures the Task API using the factory
pattern, allowing for different configurations (development, testing,
production). All endpoints are mounted under ``/api/v1``.
"""

import logging
from pathlib import Path

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from config import get_config

API_PREFIX = "/api/v1"

# Initialize SQLAlchemy without binding to app
db = SQLAlchemy()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_db_parent_exists(database_uri: str) -> None:
    """Create parent directories for file-based SQLite URIs when missing."""
    sqlite_prefix = "sqlite:///"
    if not database_uri.startswith(sqlite_prefix):
        return

    sqlite_path = database_uri[len(sqlite_prefix):].split("?", 1)[0]
    if sqlite_path in ("", ":memory:"):
        return

    Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     If None, uses FLASK_ENV environment variable.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    logger.info("Creating app with config: %s", config_class.__name__)

    _ensure_sqlite_db_parent_exists(app.config.get("SQLALCHEMY_DATABASE_URI", ""))

    # Initialize extensions
    db.init_app(app)

    # Register blueprints and error handlers
    from task_api.errors import register_error_handlers
    from task_api.routes.auth import auth_bp
    from task_api.routes.tasks import tasks_bp

    app.register_blueprint(auth_bp, url_prefix=API_PREFIX)
    app.register_blueprint(tasks_bp, url_prefix=API_PREFIX)
    register_error_handlers(app)

    # Create database tables
    with app.app_context():
        from task_api import models  # noqa: F401  (registers the mappers)

        db.create_all()
        logger.info("Database tables created")

    return app
