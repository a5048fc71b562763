"""
Resumable reindex job.

A ReindexJob re-populates the search indexes from every configured
content type, one bounded step at a time. All progress lives in a plain
RunState value so a host runner can persist it after each step and
rebuild the job from it in a later process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from searchreindex.core.config.indexes import IndexConfiguration
from searchreindex.core.config.models import Stage
from searchreindex.core.errors import FetcherUnavailableError, InvalidBatchSizeError
from searchreindex.core.fetchers.base import DocumentFetcher
from searchreindex.core.fetchers.registry import FetcherRegistry
from searchreindex.core.indexing.indexer import IndexMethod, Indexer
from searchreindex.core.indexing.service import IndexService
from searchreindex.core.logging import get_contextual_logger

BASE_TITLE = "Search service reindex all documents"


def steps_for(total_documents: int, batch_size: int) -> int:
    """Number of batch_size pages needed to cover total_documents."""
    if total_documents <= 0:
        return 0
    return (total_documents + batch_size - 1) // batch_size


def _unique(values: Iterable[str] | None) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values or ():
        value = value.strip()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


# =============================================================================
# Scope and State
# =============================================================================


@dataclass(frozen=True)
class RunScope:
    """What a run should reindex. Empty tuples mean "everything"."""

    content_types: tuple[str, ...] = ()
    index_targets: tuple[str, ...] = ()
    batch_size: int = 100

    def __post_init__(self) -> None:
        if (
            isinstance(self.batch_size, bool)
            or not isinstance(self.batch_size, int)
            or self.batch_size < 1
        ):
            raise InvalidBatchSizeError(self.batch_size)
        object.__setattr__(self, "content_types", _unique(self.content_types))
        object.__setattr__(self, "index_targets", _unique(self.index_targets))

    @classmethod
    def create(
        cls,
        content_types: Iterable[str] | None = None,
        index_targets: Iterable[str] | None = None,
        batch_size: int | None = None,
        *,
        default_batch_size: int = 100,
    ) -> "RunScope":
        """Build a scope, falling back to the configured batch size when none is given."""
        return cls(
            content_types=tuple(content_types or ()),
            index_targets=tuple(index_targets or ()),
            batch_size=default_batch_size if batch_size is None else batch_size,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_types": list(self.content_types),
            "index_targets": list(self.index_targets),
            "batch_size": self.batch_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunScope":
        return cls(
            content_types=tuple(data.get("content_types") or ()),
            index_targets=tuple(data.get("index_targets") or ()),
            batch_size=data["batch_size"],
        )


@dataclass(frozen=True)
class PlanEntry:
    """One content type in the fetch plan and its size when the run started."""

    content_type: str
    total_documents: int


@dataclass
class RunState:
    """Everything needed to resume a run. Persist it after every step."""

    batch_size: int
    plan: list[PlanEntry] = field(default_factory=list)
    fetcher_cursor: int = 0
    page_offset: int = 0
    total_steps: int = 0
    completed_steps: int = 0
    is_complete: bool = False
    only_indexes: list[str] = field(default_factory=list)
    stage: Stage = Stage.LIVE

    @property
    def current_entry(self) -> PlanEntry | None:
        if self.fetcher_cursor < len(self.plan):
            return self.plan[self.fetcher_cursor]
        return None

    @property
    def percent_complete(self) -> float:
        if self.is_complete:
            return 100.0
        if self.total_steps <= 0:
            return 0.0
        return min(100.0, 100.0 * self.completed_steps / self.total_steps)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "batch_size": self.batch_size,
            "plan": [
                {"content_type": entry.content_type, "total_documents": entry.total_documents}
                for entry in self.plan
            ],
            "fetcher_cursor": self.fetcher_cursor,
            "page_offset": self.page_offset,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "is_complete": self.is_complete,
            "only_indexes": list(self.only_indexes),
            "stage": self.stage.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunState":
        batch_size = data["batch_size"]
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            raise InvalidBatchSizeError(batch_size)

        return cls(
            batch_size=batch_size,
            plan=[
                PlanEntry(item["content_type"], int(item["total_documents"]))
                for item in data.get("plan", [])
            ],
            fetcher_cursor=int(data.get("fetcher_cursor", 0)),
            page_offset=int(data.get("page_offset", 0)),
            total_steps=int(data.get("total_steps", 0)),
            completed_steps=int(data.get("completed_steps", 0)),
            is_complete=bool(data.get("is_complete", False)),
            only_indexes=list(data.get("only_indexes") or []),
            stage=Stage(data.get("stage", Stage.LIVE.value)),
        )


StepHook = Callable[["ReindexJob", PlanEntry], None]


# =============================================================================
# Reindex Job
# =============================================================================


class ReindexJob:
    """Reindexes documents in resumable, batch-sized steps.

    Call initialize() once per run, then step() until it returns True.
    Between steps, persist ``job.state.to_dict()``; to continue in a new
    process, build the job with ``state=RunState.from_dict(...)``.
    """

    def __init__(
        self,
        scope: RunScope,
        *,
        registry: FetcherRegistry,
        configuration: IndexConfiguration,
        index_service: IndexService,
        state: RunState | None = None,
        run_id: int | None = None,
        on_before_step: StepHook | None = None,
        on_after_step: StepHook | None = None,
    ) -> None:
        self.scope = scope
        self.registry = registry
        self.configuration = configuration
        self.index_service = index_service
        self.on_before_step = on_before_step
        self.on_after_step = on_after_step
        self._state = state
        self._fetchers: dict[str, DocumentFetcher] = {}
        self.logger = get_contextual_logger("jobs.reindex", run_id=run_id)

    @property
    def title(self) -> str:
        title = BASE_TITLE

        if self.scope.index_targets:
            title += " in index " + ",".join(self.scope.index_targets)

        if self.scope.content_types:
            title += " of class " + ",".join(self.scope.content_types)

        return title

    @property
    def state(self) -> RunState:
        if self._state is None:
            raise RuntimeError("Reindex job has not been initialized")
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self) -> RunState:
        """Resolve the scope into a fetch plan and reset progress.

        Calling this again restarts the run from the beginning.

        Raises:
            ConfigurationMismatchError: If the scope names an unknown index or content type
        """
        scope = self.scope
        stage = self.configuration.stage

        write_configuration = self._write_configuration(scope.index_targets)

        if scope.content_types:
            self.configuration.validate_content_types(scope.content_types)
            content_types = list(scope.content_types)
        else:
            content_types = write_configuration.searchable_base_types

        plan: list[PlanEntry] = []
        self._fetchers = {}

        for content_type in content_types:
            fetcher = self.registry.resolve(content_type)
            if fetcher is None:
                self.logger.debug("No fetcher for %s, leaving it out of the run", content_type)
                continue

            self._fetchers[content_type] = fetcher
            plan.append(PlanEntry(content_type, fetcher.total_documents(stage)))

        total_steps = sum(steps_for(entry.total_documents, scope.batch_size) for entry in plan)

        self._state = RunState(
            batch_size=scope.batch_size,
            plan=plan,
            fetcher_cursor=0,
            page_offset=0,
            total_steps=total_steps,
            completed_steps=0,
            is_complete=total_steps == 0,
            only_indexes=list(write_configuration.only_indexes),
            stage=stage,
        )

        self.logger.info(
            "%s: %d content type(s), %d step(s)",
            self.title,
            len(plan),
            total_steps,
        )
        return self._state

    def step(self) -> bool:
        """Index one page from the current fetcher and advance.

        Returns True once every planned fetcher has been drained. Safe to
        call again after completion. If the fetcher or index service
        raises, the state is left exactly as it was, so the same step can
        be retried. Errors from on_after_step are logged, not raised.
        """
        state = self.state
        cursor = state.fetcher_cursor

        # Fetchers that were empty when the run started have no pages to index
        while cursor < len(state.plan) and state.plan[cursor].total_documents <= 0:
            cursor += 1
        offset = state.page_offset if cursor == state.fetcher_cursor else 0

        if cursor >= len(state.plan):
            state.fetcher_cursor = cursor
            state.page_offset = 0
            state.is_complete = True
            return True

        entry = state.plan[cursor]
        fetcher = self._resolve(entry.content_type)
        log = self.logger.with_context(content_type=entry.content_type)

        if self.on_before_step is not None:
            self.on_before_step(self, entry)

        # Open-ended read from the offset. A [offset, offset + batch_size)
        # window misses documents when the source order shifts between steps.
        documents = fetcher.fetch(None, offset, state.stage)

        indexer = Indexer(
            documents,
            IndexMethod.ADD,
            state.batch_size,
            service=self.index_service,
            configuration=self._write_configuration(state.only_indexes),
        )
        indexer.process_dependencies = False

        while indexer.has_more_chunks():
            indexer.process_next_chunk()

        next_offset = offset + state.batch_size

        if next_offset >= entry.total_documents:
            state.fetcher_cursor = cursor + 1
            state.page_offset = 0
            log.debug("Finished %s after offset %d", entry.content_type, offset)
        else:
            state.fetcher_cursor = cursor
            state.page_offset = next_offset

        state.completed_steps += 1
        state.is_complete = state.fetcher_cursor >= len(state.plan)

        log.info(
            "Step %d/%d: indexed %d document(s) from offset %d",
            state.completed_steps,
            state.total_steps,
            indexer.documents_written,
            offset,
            extra={"offset": offset, "step": state.completed_steps},
        )

        # The step is already applied, so a failing hook must not fail it
        if self.on_after_step is not None:
            try:
                self.on_after_step(self, entry)
            except Exception:
                log.exception("on_after_step hook failed at step %d", state.completed_steps)

        if state.is_complete:
            self.logger.info("Reindex complete after %d step(s)", state.completed_steps)

        return state.is_complete

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _resolve(self, content_type: str) -> DocumentFetcher:
        fetcher = self._fetchers.get(content_type)
        if fetcher is None:
            fetcher = self.registry.resolve(content_type)
            if fetcher is None:
                raise FetcherUnavailableError(content_type)
            self._fetchers[content_type] = fetcher
        return fetcher

    def _write_configuration(self, index_names: Iterable[str]) -> IndexConfiguration:
        names = list(index_names)
        if names:
            return self.configuration.restricted_to(names)
        return self.configuration
