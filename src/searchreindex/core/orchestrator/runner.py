"""
Reindex runner.

Hosts ReindexJob the way a job queue would: every step rebuilds the job
from the checkpoint stored on the run record, executes one step, and
writes the new checkpoint back. A failed step leaves the checkpoint
untouched so it can be retried.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from typing import Any, Callable, ContextManager

from sqlalchemy.orm import Session

from searchreindex.core.config.indexes import IndexConfiguration
from searchreindex.core.config.models import AppConfig, RunnerConfig, RunStatus
from searchreindex.core.errors import RunNotFoundError, StepFailedError
from searchreindex.core.fetchers.registry import FetcherRegistry, build_registry
from searchreindex.core.indexing.service import DatabaseIndexService, IndexService
from searchreindex.core.jobs.reindex import ReindexJob, RunScope, RunState
from searchreindex.core.logging import get_contextual_logger, get_logger
from searchreindex.core.retries import NON_RETRYABLE, RetryConfig, call_with_retry
from searchreindex.persistence.db import get_session
from searchreindex.persistence.models import ReindexRun
from searchreindex.persistence.repo import RunRepository

logger = get_logger("runner")


@dataclass
class RunProgress:
    """Snapshot of a run's progress."""

    run_id: int
    title: str
    status: str
    total_steps: int
    completed_steps: int
    is_complete: bool
    percent_complete: float
    error_message: str | None = None
    duration_seconds: float | None = None

    @classmethod
    def from_run(cls, run: ReindexRun) -> "RunProgress":
        state = RunState.from_dict(run.state) if run.state else None
        return cls(
            run_id=run.id,
            title=run.title,
            status=run.status,
            total_steps=state.total_steps if state else run.total_steps,
            completed_steps=state.completed_steps if state else run.completed_steps,
            is_complete=state.is_complete if state else False,
            percent_complete=state.percent_complete if state else 0.0,
            error_message=run.error_message,
            duration_seconds=run.duration_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "run_id": self.run_id,
            "title": self.title,
            "status": self.status,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "is_complete": self.is_complete,
            "percent_complete": round(self.percent_complete, 1),
            "error_message": self.error_message,
            "duration_seconds": self.duration_seconds,
        }


def retry_config_from(config: RunnerConfig) -> RetryConfig:
    return RetryConfig(
        max_attempts=config.max_attempts,
        min_wait=config.min_wait,
        max_wait=config.max_wait,
        jitter=False,
    )


class ReindexRunner:
    """Starts, steps and resumes persisted reindex runs."""

    def __init__(
        self,
        configuration: IndexConfiguration,
        registry: FetcherRegistry,
        index_service: IndexService,
        *,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.configuration = configuration
        self.registry = registry
        self.index_service = index_service
        self._session_factory = session_factory
        self.retry_config = retry_config or RetryConfig(jitter=False)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def start(
        self,
        scope: RunScope,
        run_type: str = "manual",
        scheduled_job_id: int | None = None,
    ) -> RunProgress:
        """Create a run, initialize it and store the first checkpoint.

        Raises:
            ConfigurationMismatchError: If the scope does not match configuration
        """
        job = self._build_job(scope)
        state = job.initialize()

        with self._session_factory() as session:
            repo = RunRepository(session)
            run = repo.create(
                title=job.title,
                scope=scope.to_dict(),
                run_type=run_type,
                scheduled_job_id=scheduled_job_id,
            )
            repo.save_state(run, state.to_dict())

            if state.is_complete:
                repo.complete(run, RunStatus.COMPLETED.value)

            session.flush()
            progress = RunProgress.from_run(run)

        logger.info(
            "Started run %d: %s (%d steps)",
            progress.run_id,
            progress.title,
            progress.total_steps,
            extra={"run_id": progress.run_id},
        )
        return progress

    def step(self, run_id: int) -> RunProgress:
        """Execute exactly one step of a run and checkpoint it.

        On failure the error is recorded, the checkpoint is left as it
        was, and the exception propagates.
        """
        with self._session_factory() as session:
            run = self._get_run(session, run_id)
            if run.status == RunStatus.COMPLETED.value:
                return RunProgress.from_run(run)
            scope = RunScope.from_dict(run.scope or {})
            state = RunState.from_dict(run.state or {})

        job = self._build_job(scope, state=state, run_id=run_id)

        try:
            complete = job.step()
        except Exception as e:
            attempts = self._record_failure(run_id, e)
            get_contextual_logger("runner", run_id=run_id).warning(
                "Step failed (attempt %d): %s", attempts, e
            )
            raise

        with self._session_factory() as session:
            repo = RunRepository(session)
            run = self._get_run(session, run_id)
            repo.save_state(run, job.state.to_dict())
            run.status = RunStatus.RUNNING.value
            run.finished_at = None
            if complete:
                repo.complete(run, RunStatus.COMPLETED.value)
            session.flush()
            return RunProgress.from_run(run)

    def run(self, run_id: int, max_steps: int | None = None) -> RunProgress:
        """Step a run until it completes or max_steps steps have been taken.

        Raises:
            StepFailedError: If a step still fails after all retry attempts
        """
        progress = self.status(run_id)
        steps = 0

        while not progress.is_complete and (max_steps is None or steps < max_steps):
            progress = self._step_with_retry(run_id)
            steps += 1

        return progress

    def status(self, run_id: int) -> RunProgress:
        with self._session_factory() as session:
            return RunProgress.from_run(self._get_run(session, run_id))

    def recent(self, limit: int = 20) -> list[RunProgress]:
        with self._session_factory() as session:
            return [RunProgress.from_run(run) for run in RunRepository(session).get_recent(limit)]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _build_job(
        self,
        scope: RunScope,
        state: RunState | None = None,
        run_id: int | None = None,
    ) -> ReindexJob:
        return ReindexJob(
            scope,
            registry=self.registry,
            configuration=self.configuration,
            index_service=self.index_service,
            state=state,
            run_id=run_id,
        )

    def _step_with_retry(self, run_id: int) -> RunProgress:
        try:
            return call_with_retry(self.step, run_id, config=self.retry_config)
        except RunNotFoundError:
            raise
        except NON_RETRYABLE:
            self._mark_failed(run_id)
            raise
        except Exception as e:
            attempts = self._mark_failed(run_id)
            logger.error("Run %d failed after %d attempt(s)", run_id, attempts)
            raise StepFailedError(run_id, attempts, e) from e

    def _record_failure(self, run_id: int, error: BaseException) -> int:
        with self._session_factory() as session:
            repo = RunRepository(session)
            run = self._get_run(session, run_id)
            return repo.record_failure(
                run,
                error_message=str(error) or type(error).__name__,
                error_traceback="".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
            )

    def _mark_failed(self, run_id: int) -> int:
        with self._session_factory() as session:
            repo = RunRepository(session)
            run = self._get_run(session, run_id)
            repo.complete(run, RunStatus.FAILED.value)
            return run.attempts

    @staticmethod
    def _get_run(session: Session, run_id: int) -> ReindexRun:
        run = RunRepository(session).get_by_id(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run


def create_runner(
    config: AppConfig,
    *,
    session_factory: Callable[[], ContextManager[Session]] = get_session,
) -> ReindexRunner:
    """Build a runner wired to the database-backed fetchers and index store."""
    configuration = IndexConfiguration.from_search_config(config.search)

    return ReindexRunner(
        configuration,
        build_registry(configuration, session_factory),
        DatabaseIndexService(session_factory),
        session_factory=session_factory,
        retry_config=retry_config_from(config.runner),
    )
