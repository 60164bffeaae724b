"""Shared infrastructure: logging, errors, persisted configuration."""
