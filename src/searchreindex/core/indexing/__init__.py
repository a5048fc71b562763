"""Indexer and index service implementations."""

from .indexer import IndexMethod, Indexer
from .service import DatabaseIndexService, IndexService, InMemoryIndexService

__all__ = [
    "IndexMethod",
    "Indexer",
    "IndexService",
    "DatabaseIndexService",
    "InMemoryIndexService",
]
