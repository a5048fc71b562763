"""
Registry mapping content types to document fetchers.
"""

from __future__ import annotations

from typing import Callable, ContextManager

from sqlalchemy.orm import Session

from searchreindex.core.config.indexes import IndexConfiguration
from searchreindex.core.config.models import SourceKind
from searchreindex.core.logging import get_logger

from .base import DocumentFetcher
from .table import TableDocumentFetcher

logger = get_logger("fetchers")

FetcherFactory = Callable[[str], DocumentFetcher]


class FetcherRegistry:
    """Resolves a content type identifier to its fetcher.

    Factories are invoked on first resolution and the fetcher is cached
    for the lifetime of the registry.
    """

    def __init__(self) -> None:
        self._factories: dict[str, FetcherFactory] = {}
        self._fetchers: dict[str, DocumentFetcher] = {}

    def register(self, content_type: str, factory: FetcherFactory) -> None:
        """Register (or replace) the factory for a content type."""
        self._factories[content_type] = factory
        self._fetchers.pop(content_type, None)

    def register_fetcher(self, fetcher: DocumentFetcher) -> None:
        """Register an already-built fetcher under its own content type."""
        self._factories[fetcher.content_type] = lambda _content_type: fetcher
        self._fetchers[fetcher.content_type] = fetcher

    def unregister(self, content_type: str) -> None:
        self._factories.pop(content_type, None)
        self._fetchers.pop(content_type, None)

    def resolve(self, content_type: str) -> DocumentFetcher | None:
        """Return the fetcher for a content type, or None if none is registered."""
        fetcher = self._fetchers.get(content_type)
        if fetcher is not None:
            return fetcher

        factory = self._factories.get(content_type)
        if factory is None:
            return None

        fetcher = factory(content_type)
        self._fetchers[content_type] = fetcher
        return fetcher

    @property
    def content_types(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, content_type: object) -> bool:
        return content_type in self._factories

    def __len__(self) -> int:
        return len(self._factories)


def build_registry(
    configuration: IndexConfiguration,
    session_factory: Callable[[], ContextManager[Session]],
) -> FetcherRegistry:
    """Register a table fetcher for every configured table source."""
    registry = FetcherRegistry()

    for content_type, kind in configuration.sources.items():
        if kind == SourceKind.TABLE:
            registry.register(
                content_type,
                lambda ct: TableDocumentFetcher(ct, session_factory),
            )
        else:
            logger.debug("No fetcher for content type %s (source kind %s)", content_type, kind.value)

    return registry
