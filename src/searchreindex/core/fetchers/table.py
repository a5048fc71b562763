"""
Fetcher reading documents from the local source_documents table.
"""

from __future__ import annotations

from typing import Callable, ContextManager

from sqlalchemy.orm import Session

from searchreindex.core.config.models import Stage
from searchreindex.persistence.models import SourceDocument
from searchreindex.persistence.repo import SourceDocumentRepository

from .base import Document, DocumentFetcher


class TableDocumentFetcher(DocumentFetcher):
    """Pages through one content type's rows, ordered by primary key.

    Live stage only sees published rows; draft stage sees all rows.
    """

    def __init__(
        self,
        content_type: str,
        session_factory: Callable[[], ContextManager[Session]],
    ) -> None:
        super().__init__(content_type)
        self._session_factory = session_factory

    def total_documents(self, stage: Stage = Stage.LIVE) -> int:
        with self._session_factory() as session:
            repo = SourceDocumentRepository(session)
            return repo.count(self.content_type, published_only=stage == Stage.LIVE)

    def fetch(
        self,
        limit: int | None,
        offset: int = 0,
        stage: Stage = Stage.LIVE,
    ) -> list[Document]:
        with self._session_factory() as session:
            repo = SourceDocumentRepository(session)
            rows = repo.page(
                self.content_type,
                offset=offset,
                limit=limit,
                published_only=stage == Stage.LIVE,
            )
            return [self._to_document(row) for row in rows]

    @staticmethod
    def _to_document(row: SourceDocument) -> Document:
        fields = dict(row.fields or {})
        if row.title is not None:
            fields["title"] = row.title
        if row.body is not None:
            fields["body"] = row.body
        return Document(
            content_type=row.content_type,
            source_id=row.source_id,
            fields=fields,
        )
