"""Security tests: ownership opacity, injection, mass assignment and log redaction."""
