"""Tests for configuration loading and the index configuration view."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from searchreindex.core.config import (
    ConfigError,
    IndexConfiguration,
    SearchConfig,
    SourceKind,
    Stage,
    load_app_config,
    validate_app_config_file,
)
from searchreindex.core.errors import ConfigurationMismatchError

if TYPE_CHECKING:
    from pathlib import Path


APP_YAML = """\
database:
  url: ${TEST_DB_URL:-sqlite:///data/fallback.db}
search:
  batch_size: 25
  stage: draft
  indexes:
    main:
      content_types: [Page, " File "]
    legacy:
      content_types: [Page]
      enabled: false
  sources:
    Page:
      kind: table
    File:
      kind: none
runner:
  max_attempts: 5
"""


class TestLoadAppConfig:
    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        config = load_app_config(tmp_path / "nope.yaml")

        assert config.search.batch_size == 100
        assert config.search.stage is Stage.LIVE
        assert config.database.url == "sqlite:///data/searchreindex.db"
        assert config.runner.max_attempts == 3

    def test_loads_search_section(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text(APP_YAML, encoding="utf-8")

        config = load_app_config(path)

        assert config.search.batch_size == 25
        assert config.search.stage is Stage.DRAFT
        assert config.search.indexes["main"].content_types == ["Page", "File"]
        assert config.search.sources["File"].kind is SourceKind.NONE
        assert config.runner.max_attempts == 5

    def test_env_default_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TEST_DB_URL", raising=False)
        path = tmp_path / "app.yaml"
        path.write_text(APP_YAML, encoding="utf-8")

        assert load_app_config(path).database.url == "sqlite:///data/fallback.db"

    def test_env_expansion(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_DB_URL", "sqlite:///elsewhere.db")
        path = tmp_path / "app.yaml"
        path.write_text(APP_YAML, encoding="utf-8")

        assert load_app_config(path).database.url == "sqlite:///elsewhere.db"

    def test_config_path_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text("search:\n  batch_size: 7\n", encoding="utf-8")
        monkeypatch.setenv("SEARCHREINDEX_CONFIG", str(path))

        assert load_app_config().search.batch_size == 7

    def test_invalid_batch_size_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("search:\n  batch_size: 0\n", encoding="utf-8")

        with pytest.raises(ConfigError) as excinfo:
            load_app_config(path)
        assert "batch_size" in (excinfo.value.details or "")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("search: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_app_config(path)


class TestValidateAppConfigFile:
    def test_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text(
            "search:\n"
            "  indexes:\n"
            "    main: {content_types: [Page]}\n"
            "  sources:\n"
            "    Page: {kind: table}\n",
            encoding="utf-8",
        )
        assert validate_app_config_file(path) == []

    def test_reports_field_errors(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text("search:\n  stage: staging\n", encoding="utf-8")

        errors = validate_app_config_file(path)

        assert len(errors) == 1
        assert errors[0].startswith("search.stage")

    def test_reports_content_types_without_source(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text(APP_YAML, encoding="utf-8")

        errors = validate_app_config_file(path)

        assert len(errors) == 1
        assert "File has no document source" in errors[0]

    def test_reports_unknown_schedule_scope(self, tmp_path: Path) -> None:
        path = tmp_path / "app.yaml"
        path.write_text(
            "search:\n"
            "  indexes:\n"
            "    main: {content_types: [Page]}\n"
            "    legacy: {content_types: [Page], enabled: false}\n"
            "  sources:\n"
            "    Page: {kind: table}\n"
            "scheduler:\n"
            "  schedules:\n"
            "    - name: nightly\n"
            "      indexes: [legacy]\n"
            "      content_types: [Video]\n",
            encoding="utf-8",
        )

        assert validate_app_config_file(path) == [
            "scheduler.schedules.nightly: unknown index legacy",
            "scheduler.schedules.nightly: unknown content type Video",
        ]

    def test_missing_file(self, tmp_path: Path) -> None:
        errors = validate_app_config_file(tmp_path / "nope.yaml")
        assert errors and "not found" in errors[0]


class TestIndexConfiguration:
    @pytest.fixture()
    def configuration(self) -> IndexConfiguration:
        return IndexConfiguration.from_search_config(
            SearchConfig.model_validate(
                {
                    "batch_size": 10,
                    "indexes": {
                        "main": {"content_types": ["Page", "File"]},
                        "files": {"content_types": ["File", "Image"]},
                        "old": {"content_types": ["Legacy"], "enabled": False},
                    },
                    "sources": {"Page": {"kind": "table"}},
                }
            )
        )

    def test_disabled_indexes_are_ignored(self, configuration: IndexConfiguration) -> None:
        assert configuration.index_names == ["main", "files"]

    def test_searchable_base_types_are_ordered_and_unique(
        self, configuration: IndexConfiguration
    ) -> None:
        assert configuration.searchable_base_types == ["Page", "File", "Image"]

    def test_indexes_for_content_type(self, configuration: IndexConfiguration) -> None:
        assert configuration.indexes_for_content_type("File") == ["main", "files"]
        assert configuration.indexes_for_content_type("Page") == ["main"]
        assert configuration.indexes_for_content_type("Unknown") == []

    def test_restricted_to_returns_new_view(self, configuration: IndexConfiguration) -> None:
        restricted = configuration.restricted_to(["files"])

        assert restricted is not configuration
        assert restricted.index_names == ["files"]
        assert restricted.searchable_base_types == ["File", "Image"]
        assert restricted.indexes_for_content_type("Page") == []
        assert configuration.index_names == ["main", "files"]
        assert restricted.batch_size == configuration.batch_size

    def test_restricted_to_unknown_index(self, configuration: IndexConfiguration) -> None:
        with pytest.raises(ConfigurationMismatchError) as excinfo:
            configuration.restricted_to(["files", "nope"])
        assert excinfo.value.unknown == ["nope"]

    def test_restricted_to_disabled_index(self, configuration: IndexConfiguration) -> None:
        with pytest.raises(ConfigurationMismatchError):
            configuration.restricted_to(["old"])

    def test_validate_content_types(self, configuration: IndexConfiguration) -> None:
        configuration.validate_content_types(["Image", "Page"])
        with pytest.raises(ConfigurationMismatchError):
            configuration.validate_content_types(["Legacy"])

    def test_sources(self, configuration: IndexConfiguration) -> None:
        assert configuration.sources == {"Page": SourceKind.TABLE}
