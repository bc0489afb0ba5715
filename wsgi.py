"""WSGI entry point for the Task API."""

import os

from task_api import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))
