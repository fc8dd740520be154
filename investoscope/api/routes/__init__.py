"""API routes package."""

from . import admin, health, jobs


__all__ = ["admin", "health", "jobs"]
