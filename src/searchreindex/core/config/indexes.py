"""
Runtime view of the search index layout.

IndexConfiguration is built once from SearchConfig and passed explicitly to
the reindex job and the indexer. Restricting it to a subset of indexes
returns a new instance.
"""

from __future__ import annotations

from typing import Iterable

from searchreindex.core.errors import ConfigurationMismatchError

from .models import IndexDefinition, SearchConfig, SourceKind, Stage


class IndexConfiguration:
    """Which indexes exist, which content types feed them, and run defaults."""

    def __init__(
        self,
        indexes: dict[str, IndexDefinition],
        *,
        batch_size: int = 100,
        stage: Stage = Stage.LIVE,
        sources: dict[str, SourceKind] | None = None,
        only_indexes: Iterable[str] | None = None,
    ) -> None:
        self._indexes = {
            name: definition for name, definition in indexes.items() if definition.enabled
        }
        self.batch_size = batch_size
        self.stage = stage
        self.sources = dict(sources or {})
        self.only_indexes: tuple[str, ...] = tuple(only_indexes or ())

    @classmethod
    def from_search_config(cls, config: SearchConfig) -> "IndexConfiguration":
        return cls(
            config.indexes,
            batch_size=config.batch_size,
            stage=config.stage,
            sources={name: source.kind for name, source in config.sources.items()},
        )

    @property
    def index_names(self) -> list[str]:
        """Names of the indexes that currently receive writes."""
        if self.only_indexes:
            return [name for name in self._indexes if name in self.only_indexes]
        return list(self._indexes)

    @property
    def searchable_base_types(self) -> list[str]:
        """Ordered, de-duplicated content types across the active indexes."""
        seen: dict[str, None] = {}
        for name in self.index_names:
            for content_type in self._indexes[name].content_types:
                seen.setdefault(content_type, None)
        return list(seen)

    def indexes_for_content_type(self, content_type: str) -> list[str]:
        return [
            name
            for name in self.index_names
            if content_type in self._indexes[name].content_types
        ]

    def restricted_to(self, index_names: Iterable[str]) -> "IndexConfiguration":
        """Return a copy that only writes to the named indexes.

        Raises:
            ConfigurationMismatchError: If a name is not a configured index
        """
        names = [name for name in index_names if name]
        unknown = [name for name in names if name not in self._indexes]
        if unknown:
            raise ConfigurationMismatchError(
                f"Unknown index(es): {', '.join(unknown)}",
                unknown=unknown,
            )

        return IndexConfiguration(
            self._indexes,
            batch_size=self.batch_size,
            stage=self.stage,
            sources=self.sources,
            only_indexes=names,
        )

    def validate_content_types(self, content_types: Iterable[str]) -> None:
        """Reject explicit content types that no active index includes."""
        known = set(self.searchable_base_types)
        unknown = [ct for ct in content_types if ct not in known]
        if unknown:
            raise ConfigurationMismatchError(
                f"Unknown content type(s): {', '.join(unknown)}",
                unknown=unknown,
            )

    def __repr__(self) -> str:
        return f"<IndexConfiguration(indexes={self.index_names}, batch_size={self.batch_size})>"
