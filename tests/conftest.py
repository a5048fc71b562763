"""Shared test fixtures for SearchReindex."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import pytest

from searchreindex.core.config.indexes import IndexConfiguration
from searchreindex.core.config.models import IndexDefinition, SourceKind
from searchreindex.core.fetchers.base import Document, StaticDocumentFetcher
from searchreindex.core.fetchers.registry import FetcherRegistry
from searchreindex.core.indexing.service import InMemoryIndexService
from searchreindex.persistence.db import dispose_engines, init_db

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _fresh_engine() -> Iterator[None]:
    """Make sure every test binds its own database engine."""
    dispose_engines()
    yield
    dispose_engines()


@pytest.fixture()
def database(tmp_path: Path) -> str:
    """Create an empty SQLite database and bind the global engine to it."""
    url = f"sqlite:///{tmp_path / 'test.db'}"
    init_db(url)
    return url


@pytest.fixture()
def make_documents() -> Callable[..., list[Document]]:
    def _make(content_type: str, count: int, **fields: object) -> list[Document]:
        return [
            Document(content_type, str(n), {"title": f"{content_type} {n}", **fields})
            for n in range(1, count + 1)
        ]

    return _make


@pytest.fixture()
def index_config() -> IndexConfiguration:
    """Two indexes: 'main' holds Page and File, 'archive' holds File only."""
    return IndexConfiguration(
        {
            "main": IndexDefinition(content_types=["Page", "File"]),
            "archive": IndexDefinition(content_types=["File"]),
        },
        batch_size=2,
        sources={"Page": SourceKind.TABLE, "File": SourceKind.TABLE},
    )


@pytest.fixture()
def index_service() -> InMemoryIndexService:
    return InMemoryIndexService()


@pytest.fixture()
def registry(make_documents: Callable[..., list[Document]]) -> FetcherRegistry:
    """Page has 5 documents, File has 3."""
    registry = FetcherRegistry()
    registry.register_fetcher(StaticDocumentFetcher("Page", make_documents("Page", 5)))
    registry.register_fetcher(StaticDocumentFetcher("File", make_documents("File", 3)))
    return registry
