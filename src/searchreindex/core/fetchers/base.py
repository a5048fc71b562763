"""
Fetcher base classes and data structures.

Defines the capability every content type source provides to the
reindex job: a document count and offset-based pages of documents.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable

from searchreindex.core.config.models import Stage


@dataclass(frozen=True)
class Document:
    """A single document ready to be written to a search index."""

    content_type: str
    source_id: str
    fields: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def identifier(self) -> str:
        """Stable identity used for idempotent index upserts."""
        return f"{self.content_type}_{self.source_id}"

    def to_payload(self) -> dict[str, Any]:
        """Serializable body sent to the index service."""
        return {
            "id": self.identifier,
            "content_type": self.content_type,
            "source_id": self.source_id,
            **self.fields,
        }


class DocumentFetcher(ABC):
    """Paginates the documents of one content type.

    Implementations must accept limit=None, meaning "everything from
    offset onwards".
    """

    def __init__(self, content_type: str) -> None:
        self.content_type = content_type

    @abstractmethod
    def total_documents(self, stage: Stage = Stage.LIVE) -> int:
        """Number of documents visible at the given stage."""

    @abstractmethod
    def fetch(
        self,
        limit: int | None,
        offset: int = 0,
        stage: Stage = Stage.LIVE,
    ) -> list[Document]:
        """Return documents starting at offset, at most limit of them."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(content_type='{self.content_type}')>"


class StaticDocumentFetcher(DocumentFetcher):
    """Fetcher over an in-memory list of documents.

    Draft stage sees every document; live stage skips documents whose
    fields carry ``published: False``.
    """

    def __init__(self, content_type: str, documents: Iterable[Document] = ()) -> None:
        super().__init__(content_type)
        self.documents = list(documents)

    def _visible(self, stage: Stage) -> list[Document]:
        if stage == Stage.DRAFT:
            return list(self.documents)
        return [doc for doc in self.documents if doc.fields.get("published", True)]

    def total_documents(self, stage: Stage = Stage.LIVE) -> int:
        return len(self._visible(stage))

    def fetch(
        self,
        limit: int | None,
        offset: int = 0,
        stage: Stage = Stage.LIVE,
    ) -> list[Document]:
        visible = self._visible(stage)
        if limit is None:
            return visible[offset:]
        return visible[offset:offset + limit]
