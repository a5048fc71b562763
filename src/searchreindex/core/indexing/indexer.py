"""
Chunked indexer.

Takes a sequence of documents and writes them to their target indexes
one chunk per call, so callers can interleave progress reporting with
the writes.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Callable, Iterable, Sequence

from searchreindex.core.config.indexes import IndexConfiguration
from searchreindex.core.errors import InvalidBatchSizeError
from searchreindex.core.fetchers.base import Document
from searchreindex.core.logging import get_logger

from .service import IndexService

logger = get_logger("indexer")

DependencyResolver = Callable[[Document], Iterable[Document]]


class IndexMethod(str, Enum):
    """Write mode for an indexer."""

    ADD = "add"
    DELETE = "delete"


class Indexer:
    """Drains a document sequence into the index service in chunks.

    Usage:
        indexer = Indexer(documents, IndexMethod.ADD, 100, service=..., configuration=...)
        while indexer.has_more_chunks():
            indexer.process_next_chunk()

    When ``process_dependencies`` is on, documents returned by the
    dependency resolver for each processed chunk are queued as further
    chunks. Each identifier is processed at most once per indexer.
    """

    def __init__(
        self,
        documents: Sequence[Document],
        method: IndexMethod = IndexMethod.ADD,
        batch_size: int = 100,
        *,
        service: IndexService,
        configuration: IndexConfiguration,
        dependency_resolver: DependencyResolver | None = None,
    ) -> None:
        if batch_size < 1:
            raise InvalidBatchSizeError(batch_size)

        self.method = method
        self.batch_size = batch_size
        self.service = service
        self.configuration = configuration
        self.dependency_resolver = dependency_resolver
        self.process_dependencies = True

        self._pending: deque[Document] = deque()
        self._seen: set[str] = set()
        self._queue(documents)

        self.chunks_processed = 0
        self.documents_written = 0

    def _queue(self, documents: Iterable[Document]) -> int:
        queued = 0
        for document in documents:
            if document.identifier in self._seen:
                continue
            self._seen.add(document.identifier)
            self._pending.append(document)
            queued += 1
        return queued

    def has_more_chunks(self) -> bool:
        return bool(self._pending)

    def process_next_chunk(self) -> None:
        """Write the next chunk to every index it targets."""
        if not self._pending:
            return

        chunk = [
            self._pending.popleft()
            for _ in range(min(self.batch_size, len(self._pending)))
        ]

        for index_name, documents in self._group_by_index(chunk).items():
            if self.method == IndexMethod.ADD:
                self.documents_written += self.service.add_documents(index_name, documents)
            else:
                self.service.remove_documents(index_name, documents)

        self.chunks_processed += 1

        if self.process_dependencies and self.dependency_resolver is not None:
            dependents: list[Document] = []
            for document in chunk:
                dependents.extend(self.dependency_resolver(document))
            queued = self._queue(dependents)
            if queued:
                logger.debug("Queued %d dependent document(s)", queued)

    def _group_by_index(self, chunk: list[Document]) -> dict[str, list[Document]]:
        grouped: dict[str, list[Document]] = {}
        for document in chunk:
            targets = self.configuration.indexes_for_content_type(document.content_type)
            if not targets:
                logger.debug("No target index for %s, skipping", document.identifier)
            for index_name in targets:
                grouped.setdefault(index_name, []).append(document)
        return grouped
