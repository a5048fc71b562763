"""Tests for document fetchers and the fetcher registry."""

from __future__ import annotations

from searchreindex.core.config.models import SourceKind, Stage
from searchreindex.core.fetchers import (
    Document,
    FetcherRegistry,
    StaticDocumentFetcher,
    TableDocumentFetcher,
    build_registry,
)
from searchreindex.persistence.db import get_session
from searchreindex.persistence.repo import SourceDocumentRepository


class TestDocument:
    def test_identifier(self) -> None:
        assert Document("Page", "42").identifier == "Page_42"

    def test_equality_ignores_fields(self) -> None:
        assert Document("Page", "1", {"a": 1}) == Document("Page", "1", {"a": 2})

    def test_payload(self) -> None:
        payload = Document("Page", "1", {"title": "Home"}).to_payload()
        assert payload == {"id": "Page_1", "content_type": "Page", "source_id": "1", "title": "Home"}


class TestStaticDocumentFetcher:
    def test_open_ended_fetch(self, make_documents) -> None:
        fetcher = StaticDocumentFetcher("Page", make_documents("Page", 5))
        assert [doc.source_id for doc in fetcher.fetch(None, 3)] == ["4", "5"]

    def test_bounded_fetch(self, make_documents) -> None:
        fetcher = StaticDocumentFetcher("Page", make_documents("Page", 5))
        assert [doc.source_id for doc in fetcher.fetch(2, 1)] == ["2", "3"]

    def test_offset_past_end(self, make_documents) -> None:
        fetcher = StaticDocumentFetcher("Page", make_documents("Page", 2))
        assert fetcher.fetch(None, 10) == []

    def test_stage_visibility(self) -> None:
        fetcher = StaticDocumentFetcher(
            "Page",
            [Document("Page", "1"), Document("Page", "2", {"published": False})],
        )
        assert fetcher.total_documents(Stage.LIVE) == 1
        assert fetcher.total_documents(Stage.DRAFT) == 2


class TestFetcherRegistry:
    def test_resolve_unknown_returns_none(self) -> None:
        assert FetcherRegistry().resolve("Page") is None

    def test_factory_is_lazy_and_cached(self) -> None:
        created = []

        def factory(content_type: str) -> StaticDocumentFetcher:
            created.append(content_type)
            return StaticDocumentFetcher(content_type)

        registry = FetcherRegistry()
        registry.register("Page", factory)
        assert created == []

        first = registry.resolve("Page")
        second = registry.resolve("Page")

        assert first is second
        assert created == ["Page"]

    def test_membership_and_unregister(self) -> None:
        registry = FetcherRegistry()
        registry.register_fetcher(StaticDocumentFetcher("Page"))

        assert "Page" in registry
        assert len(registry) == 1
        assert registry.content_types == ["Page"]

        registry.unregister("Page")
        assert "Page" not in registry
        assert registry.resolve("Page") is None

    def test_reregister_replaces_cached_fetcher(self) -> None:
        registry = FetcherRegistry()
        registry.register_fetcher(StaticDocumentFetcher("Page"))
        replacement = StaticDocumentFetcher("Page", [Document("Page", "1")])

        registry.register("Page", lambda _ct: replacement)

        assert registry.resolve("Page") is replacement


class TestBuildRegistry:
    def test_registers_table_sources_only(self, index_config) -> None:
        index_config.sources["File"] = SourceKind.NONE

        registry = build_registry(index_config, get_session)

        assert registry.content_types == ["Page"]
        assert isinstance(registry.resolve("Page"), TableDocumentFetcher)


class TestTableDocumentFetcher:
    def _seed(self) -> None:
        with get_session() as session:
            repo = SourceDocumentRepository(session)
            repo.upsert("Page", "a", title="A", body="alpha", fields={"lang": "en"})
            repo.upsert("Page", "b", title="B", published=False)
            repo.upsert("Page", "c", title="C")
            repo.upsert("File", "f", title="F")

    def test_counts_by_stage(self, database) -> None:
        self._seed()
        fetcher = TableDocumentFetcher("Page", get_session)

        assert fetcher.total_documents(Stage.LIVE) == 2
        assert fetcher.total_documents(Stage.DRAFT) == 3

    def test_fetch_in_insertion_order(self, database) -> None:
        self._seed()
        fetcher = TableDocumentFetcher("Page", get_session)

        assert [doc.source_id for doc in fetcher.fetch(None, 0, Stage.LIVE)] == ["a", "c"]
        assert [doc.source_id for doc in fetcher.fetch(1, 1, Stage.DRAFT)] == ["b"]

    def test_document_fields(self, database) -> None:
        self._seed()
        fetcher = TableDocumentFetcher("Page", get_session)

        document = fetcher.fetch(1, 0)[0]

        assert document.content_type == "Page"
        assert document.fields == {"lang": "en", "title": "A", "body": "alpha"}
