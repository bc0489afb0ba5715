"""
Test suite for the Task API.

This package contains:
- unit/: pure helpers (filters, payloads, tokens, documents) and models
- integration/: HTTP tests through the Flask test client
- security/: ownership opacity, injection, token and redaction tests
"""
