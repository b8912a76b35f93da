"""Shared utilities: logging, errors, retry, URL helpers."""
