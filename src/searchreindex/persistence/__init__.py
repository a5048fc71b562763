"""Database persistence layer."""

from .db import get_engine, get_session, init_db
from .models import Base, IndexedDocument, ReindexRun, RunLock, ScheduledJob, SourceDocument
from .repo import IndexedDocumentRepository, RunRepository, SourceDocumentRepository

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "Base",
    "IndexedDocument",
    "ReindexRun",
    "RunLock",
    "ScheduledJob",
    "SourceDocument",
    "IndexedDocumentRepository",
    "RunRepository",
    "SourceDocumentRepository",
]
