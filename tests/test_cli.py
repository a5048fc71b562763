"""Tests for the command line interface."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import orjson
import pytest
from typer.testing import CliRunner

from searchreindex import __version__
from searchreindex.cli.main import app

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

runner = CliRunner()

APP_YAML = """\
database:
  url: sqlite:///{db_path}
logging:
  level: WARNING
  file: null
  rich_console: false
search:
  batch_size: 2
  indexes:
    main:
      content_types: [Page, File]
    files:
      content_types: [File]
  sources:
    Page:
      kind: table
    File:
      kind: table
runner:
  max_attempts: 1
  min_wait: 0
  max_wait: 0
scheduler:
  datastore_url: sqlite:///{schedules_path}
"""

PAGES_YAML = """\
documents:
  - id: 1
    title: Home
  - id: 2
    title: About
  - id: 3
    title: Contact
    tags: [support]
"""


@pytest.fixture()
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """An initialized project directory with its own config and database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SEARCHREINDEX_CONFIG", raising=False)

    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    (config_dir / "app.yaml").write_text(
        APP_YAML.format(
            db_path=tmp_path / "data" / "test.db",
            schedules_path=tmp_path / "data" / "schedules.db",
        ),
        encoding="utf-8",
    )

    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0, result.output

    yield tmp_path

    # Handlers hold the runner's captured streams
    logging.getLogger("searchreindex").handlers.clear()


def _import_pages(project: Path) -> None:
    pages = project / "pages.yaml"
    pages.write_text(PAGES_YAML, encoding="utf-8")
    result = runner.invoke(app, ["documents", "import", str(pages), "--type", "Page"])
    assert result.exit_code == 0, result.output


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    def test_init_writes_default_config(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SEARCHREINDEX_DATABASE_URL", f"sqlite:///{tmp_path / 'data' / 'init.db'}")
        monkeypatch.delenv("SEARCHREINDEX_CONFIG", raising=False)

        result = runner.invoke(app, ["init"])
        logging.getLogger("searchreindex").handlers.clear()

        assert result.exit_code == 0, result.output
        assert (tmp_path / "configs" / "app.yaml").exists()
        assert (tmp_path / "logs").is_dir()
        assert "initialized" in result.output

    def test_init_keeps_existing_config(self, project: Path) -> None:
        before = (project / "configs" / "app.yaml").read_text(encoding="utf-8")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0, result.output
        assert (project / "configs" / "app.yaml").read_text(encoding="utf-8") == before


class TestDocuments:
    def test_import_and_count(self, project: Path) -> None:
        _import_pages(project)

        result = runner.invoke(app, ["documents", "count"])

        assert result.exit_code == 0, result.output
        assert "Page" in result.output
        assert "3" in result.output

    def test_reimport_updates(self, project: Path) -> None:
        _import_pages(project)
        pages = project / "pages.yaml"

        result = runner.invoke(app, ["documents", "import", str(pages), "-t", "Page"])

        assert result.exit_code == 0, result.output
        assert "Updated: 3" in result.output

    def test_import_json(self, project: Path) -> None:
        files = project / "files.json"
        files.write_bytes(orjson.dumps([{"source_id": "a.pdf", "title": "A"}]))

        result = runner.invoke(app, ["documents", "import", str(files), "-t", "File"])

        assert result.exit_code == 0, result.output
        assert "Created: 1" in result.output

    def test_import_rejects_records_without_id(self, project: Path) -> None:
        bad = project / "bad.yaml"
        bad.write_text("- title: No id\n", encoding="utf-8")

        result = runner.invoke(app, ["documents", "import", str(bad), "-t", "Page"])

        assert result.exit_code == 1

    def test_count_empty(self, project: Path) -> None:
        result = runner.invoke(app, ["documents", "count"])
        assert result.exit_code == 0
        assert "No documents yet" in result.output


class TestReindex:
    def test_start_and_run_to_completion(self, project: Path) -> None:
        _import_pages(project)

        result = runner.invoke(app, ["reindex", "start", "--run"])

        assert result.exit_code == 0, result.output
        assert "Started run 1" in result.output
        assert "COMPLETED" in result.output

        counts = runner.invoke(app, ["documents", "count"])
        assert "main" in counts.output

    def test_start_then_step(self, project: Path) -> None:
        _import_pages(project)

        started = runner.invoke(app, ["reindex", "start", "-t", "Page"])
        assert started.exit_code == 0, started.output
        assert "Total steps: 2" in started.output

        stepped = runner.invoke(app, ["reindex", "step", "1"])
        assert stepped.exit_code == 0, stepped.output
        assert "Steps: 1/2" in stepped.output
        assert "RUNNING" in stepped.output

        finished = runner.invoke(app, ["reindex", "run", "1"])
        assert finished.exit_code == 0, finished.output
        assert "COMPLETED" in finished.output

    def test_status_as_json(self, project: Path) -> None:
        _import_pages(project)
        runner.invoke(app, ["reindex", "start", "-b", "1"])

        result = runner.invoke(app, ["reindex", "status", "1", "--json"])

        assert result.exit_code == 0, result.output
        payload = orjson.loads(result.stdout)
        assert payload["run_id"] == 1
        assert payload["total_steps"] == 3
        assert payload["completed_steps"] == 0
        assert payload["is_complete"] is False

    def test_start_without_documents_completes_immediately(self, project: Path) -> None:
        result = runner.invoke(app, ["reindex", "start"])

        assert result.exit_code == 0, result.output
        assert "Total steps: 0" in result.output
        assert "Continue with" not in result.output

    def test_invalid_batch_size(self, project: Path) -> None:
        result = runner.invoke(app, ["reindex", "start", "-b", "0"])
        assert result.exit_code == 1

    def test_unknown_index(self, project: Path) -> None:
        result = runner.invoke(app, ["reindex", "start", "-i", "missing"])
        assert result.exit_code == 1

    def test_unknown_run(self, project: Path) -> None:
        assert runner.invoke(app, ["reindex", "status", "42"]).exit_code == 1
        assert runner.invoke(app, ["reindex", "step", "42"]).exit_code == 1

    def test_list(self, project: Path) -> None:
        empty = runner.invoke(app, ["reindex", "list"])
        assert "No reindex runs yet" in empty.output

        runner.invoke(app, ["reindex", "start"])
        result = runner.invoke(app, ["reindex", "list"])

        assert result.exit_code == 0, result.output
        assert "COMPLETED" in result.output


class TestStatus:
    def test_status_after_run(self, project: Path) -> None:
        _import_pages(project)
        runner.invoke(app, ["reindex", "start", "--run"])

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0, result.output
        assert "Recent Runs" in result.output
        assert "main" in result.output


class TestSchedule:
    def test_add_list_pause_resume_delete(self, project: Path) -> None:
        added = runner.invoke(app, ["schedule", "add", "nightly", "--daily", "03:00", "-t", "Page"])
        assert added.exit_code == 0, added.output

        listed = runner.invoke(app, ["schedule", "list"])
        assert "nightly" in listed.output
        assert "Enabled" in listed.output

        paused = runner.invoke(app, ["schedule", "pause", "nightly"])
        assert paused.exit_code == 0
        assert "Disabled" in runner.invoke(app, ["schedule", "list"]).output

        assert runner.invoke(app, ["schedule", "resume", "nightly"]).exit_code == 0

        deleted = runner.invoke(app, ["schedule", "delete", "nightly", "--force"])
        assert deleted.exit_code == 0
        assert "No schedules configured" in runner.invoke(app, ["schedule", "list"]).output

    def test_add_requires_one_frequency(self, project: Path) -> None:
        result = runner.invoke(app, ["schedule", "add", "both", "--daily", "03:00", "--hourly"])
        assert result.exit_code == 1

    def test_add_rejects_bad_time(self, project: Path) -> None:
        result = runner.invoke(app, ["schedule", "add", "late", "--daily", "25:00"])
        assert result.exit_code == 1

    def test_add_rejects_duplicate(self, project: Path) -> None:
        runner.invoke(app, ["schedule", "add", "hourly", "--hourly"])
        result = runner.invoke(app, ["schedule", "add", "hourly", "--hourly"])
        assert result.exit_code == 1

    def test_pause_unknown(self, project: Path) -> None:
        assert runner.invoke(app, ["schedule", "pause", "nope"]).exit_code == 1

    def test_run_now(self, project: Path) -> None:
        _import_pages(project)
        runner.invoke(app, ["schedule", "add", "pages", "--hourly", "-t", "Page"])

        result = runner.invoke(app, ["schedule", "run-now", "pages"])

        assert result.exit_code == 0, result.output
        assert "Completed run 1" in result.output

    def test_run_now_paused_is_skipped(self, project: Path) -> None:
        runner.invoke(app, ["schedule", "add", "pages", "--hourly"])
        runner.invoke(app, ["schedule", "pause", "pages"])

        result = runner.invoke(app, ["schedule", "run-now", "pages"])

        assert result.exit_code == 0, result.output
        assert "Skipped" in result.output


class TestDb:
    def test_stats(self, project: Path) -> None:
        _import_pages(project)

        result = runner.invoke(app, ["db", "stats"])

        assert result.exit_code == 0, result.output
        assert "source_documents" in result.output
        assert "reindex_runs" in result.output

    def test_init_drop(self, project: Path) -> None:
        _import_pages(project)

        result = runner.invoke(app, ["db", "init", "--drop", "--yes"])

        assert result.exit_code == 0, result.output
        assert "No documents yet" in runner.invoke(app, ["documents", "count"]).output


class TestValidate:
    def test_valid_project_config(self, project: Path) -> None:
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 0, result.output
        assert "is valid" in result.output

    def test_reports_problems(self, project: Path) -> None:
        broken = project / "broken.yaml"
        broken.write_text(
            "search:\n  indexes:\n    main: {content_types: [Video]}\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, ["validate", str(broken)])

        assert result.exit_code == 1


class TestMigrations:
    def test_migrate_fresh_database(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SEARCHREINDEX_CONFIG", raising=False)
        (tmp_path / "configs").mkdir()
        (tmp_path / "configs" / "app.yaml").write_text(
            APP_YAML.format(
                db_path=tmp_path / "data" / "migrated.db",
                schedules_path=tmp_path / "data" / "schedules.db",
            ),
            encoding="utf-8",
        )

        try:
            result = runner.invoke(app, ["db", "migrate"])
            assert result.exit_code == 0, result.output

            stats = runner.invoke(app, ["db", "stats"])
            assert stats.exit_code == 0, stats.output
            assert "missing" not in stats.output
        finally:
            logging.getLogger("searchreindex").handlers.clear()
