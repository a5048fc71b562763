"""
Index service implementations.

An index service performs the actual write of documents into one
physical index. Writes are upserts keyed by document identifier, so
writing the same document twice leaves one copy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, ContextManager, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from searchreindex.core.errors import IndexWriteError
from searchreindex.core.fetchers.base import Document
from searchreindex.persistence.repo import IndexedDocumentRepository


class IndexService(ABC):
    """Abstract base class for index write backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Service identifier."""

    @abstractmethod
    def add_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        """Upsert documents into an index. Returns the number written."""

    @abstractmethod
    def remove_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        """Remove documents from an index. Returns the number removed."""


class InMemoryIndexService(IndexService):
    """Dict-backed index service for tests and dry runs."""

    def __init__(self) -> None:
        self.indexes: dict[str, dict[str, dict[str, Any]]] = {}
        self.write_log: list[tuple[str, list[str]]] = []

    @property
    def name(self) -> str:
        return "memory"

    def add_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        store = self.indexes.setdefault(index_name, {})
        for document in documents:
            store[document.identifier] = document.to_payload()
        self.write_log.append((index_name, [doc.identifier for doc in documents]))
        return len(documents)

    def remove_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        store = self.indexes.get(index_name, {})
        removed = 0
        for document in documents:
            if store.pop(document.identifier, None) is not None:
                removed += 1
        return removed

    def document_ids(self, index_name: str) -> set[str]:
        return set(self.indexes.get(index_name, {}))


class DatabaseIndexService(IndexService):
    """Writes documents into the local indexed_documents table."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]]) -> None:
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return "database"

    def add_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        try:
            with self._session_factory() as session:
                repo = IndexedDocumentRepository(session)
                for document in documents:
                    repo.upsert(
                        index_name,
                        document.identifier,
                        document.content_type,
                        document.to_payload(),
                    )
        except SQLAlchemyError as e:
            raise IndexWriteError(index_name, str(e)) from e
        return len(documents)

    def remove_documents(self, index_name: str, documents: Sequence[Document]) -> int:
        try:
            with self._session_factory() as session:
                repo = IndexedDocumentRepository(session)
                return repo.remove(index_name, [doc.identifier for doc in documents])
        except SQLAlchemyError as e:
            raise IndexWriteError(index_name, str(e)) from e
