"""
HTTP-level tests for the Task API.

Tests use the Flask test client and demonstrate:
- Authentication lifecycle testing
- CRUD and nested-route testing
- Filtering, sorting and pagination testing
- Error envelope testing
"""
