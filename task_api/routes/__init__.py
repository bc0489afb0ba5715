"""
Routes package for the Task API.

This package contains route blueprints, both mounted under ``/api/v1``:
- auth: health check, registration, login, logout and profile
- tasks: task CRUD for the caller and nested per-user task routes
"""
