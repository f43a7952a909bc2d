"""Shared utilities (structured logging, ULID generation)."""
