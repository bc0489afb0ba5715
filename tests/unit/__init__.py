"""Unit tests for pure helpers and models."""
