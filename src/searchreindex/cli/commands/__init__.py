"""CLI command modules."""

from . import db, documents, reindex, schedule

__all__ = [
    "db",
    "documents",
    "reindex",
    "schedule",
]
