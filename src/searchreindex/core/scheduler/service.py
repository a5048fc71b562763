"""
APScheduler v4 integration for SearchReindex.
"""

from __future__ import annotations

import os
import socket
from datetime import datetime, timedelta
from typing import Iterable
from uuid import uuid4

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.datastores.sqlalchemy import SQLAlchemyDataStore
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine

from searchreindex.core.config.loader import load_app_config
from searchreindex.core.config.models import AppConfig, RunStatus, ScheduleConfig
from searchreindex.core.errors import LockLostError
from searchreindex.core.jobs.reindex import RunScope
from searchreindex.core.logging import get_logger
from searchreindex.core.orchestrator.runner import create_runner
from searchreindex.core.scheduler.locks import LockManager, lock_name_for
from searchreindex.persistence.db import get_async_url, get_session
from searchreindex.persistence.models import ScheduledJob
from searchreindex.persistence.repo import RunRepository

logger = get_logger("scheduler")


def execute_scheduled_reindex(
    job_name: str,
    holder_id: str,
    config: AppConfig | None = None,
) -> int | None:
    """Run a scheduled reindex to completion.

    The job's lock is refreshed after every step. Returns the run id, or
    None when the job is disabled, missing or another holder owns its lock.
    """
    with get_session() as session:
        stmt = select(ScheduledJob).where(ScheduledJob.name == job_name)
        job = session.execute(stmt).scalar_one_or_none()

        if job is None or not job.enabled:
            logger.warning("Scheduled job not found or disabled: %s", job_name)
            return None

        job_id = job.id
        content_types = _coerce_list(job.content_types_json)
        indexes = _coerce_list(job.indexes_json)
        batch_size = job.batch_size
        ttl_minutes = job.max_runtime_minutes or 120

    if config is None:
        config = load_app_config()

    lock_name = lock_name_for(job_name)

    with get_session() as session:
        if not LockManager(session).acquire(lock_name, holder_id, ttl_minutes=ttl_minutes):
            logger.info("Lock held, skipping run for %s", job_name)
            return None

    status = RunStatus.COMPLETED.value
    try:
        runner = create_runner(config)
        scope = RunScope.create(
            content_types,
            indexes,
            batch_size,
            default_batch_size=config.search.batch_size,
        )
        progress = runner.start(scope, run_type="scheduled", scheduled_job_id=job_id)

        while True:
            with get_session() as session:
                locks = LockManager(session)
                if not locks.refresh(lock_name, holder_id, ttl_minutes, run_id=progress.run_id):
                    raise LockLostError(lock_name, progress.run_id)
            if progress.is_complete:
                break
            progress = runner.run(progress.run_id, max_steps=1)
    except LockLostError as e:
        status = RunStatus.FAILED.value
        _fail_run(e.run_id, str(e))
        logger.error("Lost lock %s, stopped run %s", lock_name, e.run_id)
        raise
    except Exception:
        status = RunStatus.FAILED.value
        logger.exception("Scheduled job failed: %s", job_name)
        raise
    finally:
        _update_job_status(job_name, status)
        with get_session() as session:
            LockManager(session).release(lock_name, holder_id)

    return progress.run_id


def _fail_run(run_id: int, message: str) -> None:
    """Mark a still-running run FAILED. Its checkpoint is kept for resuming."""
    with get_session() as session:
        repo = RunRepository(session)
        run = repo.get_by_id(run_id)
        if run is None or run.status != RunStatus.RUNNING.value:
            return

        run.error_message = message
        repo.complete(run, RunStatus.FAILED.value)


def _update_job_status(job_name: str, status: str) -> None:
    with get_session() as session:
        stmt = select(ScheduledJob).where(ScheduledJob.name == job_name)
        job = session.execute(stmt).scalar_one_or_none()
        if job is None:
            return

        job.last_run_at = datetime.utcnow()
        job.last_status = status


def _coerce_list(value: object | None) -> list[str]:
    if value is None:
        return []

    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]

    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]

    return []


def sync_config_schedules(schedules: Iterable[ScheduleConfig]) -> int:
    """Create or update ScheduledJob rows from configured schedules.

    Returns the number of rows written.
    """
    written = 0

    with get_session() as session:
        for schedule in schedules:
            stmt = select(ScheduledJob).where(ScheduledJob.name == schedule.name)
            job = session.execute(stmt).scalar_one_or_none()
            if job is None:
                job = ScheduledJob(name=schedule.name)
                session.add(job)

            job.enabled = schedule.enabled
            job.content_types_json = list(schedule.content_types)
            job.indexes_json = list(schedule.indexes)
            job.batch_size = schedule.batch_size
            job.schedule_type = schedule.schedule_type.value
            job.time_of_day = schedule.time_of_day.strftime("%H:%M")
            job.cron_expression = schedule.cron_expression
            job.timezone = schedule.timezone
            job.jitter_minutes = schedule.jitter_minutes
            job.max_runtime_minutes = schedule.max_runtime_minutes
            written += 1

    return written


class SchedulerService:
    """APScheduler v4 integration for SearchReindex."""

    def __init__(self, db_url: str = "sqlite:///data/schedules.db") -> None:
        self.db_url = get_async_url(db_url)
        self._scheduler: AsyncScheduler | None = None
        self._holder_id = f"{socket.gethostname()}-{os.getpid()}-{uuid4().hex[:8]}"

    @property
    def holder_id(self) -> str:
        return self._holder_id

    async def start(self) -> None:
        """Start scheduler in foreground mode (blocking)."""
        engine = create_async_engine(self.db_url)
        data_store = SQLAlchemyDataStore(engine)

        async with AsyncScheduler(data_store) as scheduler:
            self._scheduler = scheduler
            await self._sync_schedules_from_db()
            await scheduler.run_until_stopped()

    async def _sync_schedules_from_db(self) -> None:
        """Read the ScheduledJob table and add enabled jobs to APScheduler."""
        if self._scheduler is None:
            raise RuntimeError("Scheduler is not initialized")

        with get_session() as session:
            stmt = select(ScheduledJob).where(ScheduledJob.enabled.is_(True))
            jobs = session.execute(stmt).scalars().all()

        for job in jobs:
            trigger = self._build_trigger(job)
            max_jitter = None
            if job.jitter_minutes > 0:
                max_jitter = timedelta(minutes=job.jitter_minutes)

            # Sync callables run in APScheduler's thread pool
            await self._scheduler.add_schedule(
                execute_scheduled_reindex,
                trigger,
                id=job.name,
                args=[job.name, self._holder_id],
                conflict_policy=ConflictPolicy.replace,
                max_jitter=max_jitter,
            )
            logger.info("Scheduled %s (%s)", job.name, job.schedule_type)

    def trigger_now(self, job_name: str, config: AppConfig | None = None) -> int | None:
        """Run a scheduled job immediately in this process."""
        return execute_scheduled_reindex(job_name, self._holder_id, config)

    def _build_trigger(self, job: ScheduledJob) -> CronTrigger | IntervalTrigger:
        """Convert ScheduledJob config to an APScheduler trigger."""
        schedule_type = job.schedule_type.lower()
        timezone = job.timezone

        if schedule_type in {"daily", "weekday"}:
            hour, minute = parse_time_of_day(job.time_of_day)
            day_of_week = "mon-fri" if schedule_type == "weekday" else None
            return CronTrigger(hour=hour, minute=minute, day_of_week=day_of_week, timezone=timezone)

        if schedule_type == "hourly":
            return IntervalTrigger(hours=1)

        if schedule_type == "cron":
            if not job.cron_expression:
                raise ValueError(f"Missing cron expression for job {job.name}")
            return CronTrigger.from_crontab(job.cron_expression, timezone=timezone)

        raise ValueError(f"Unsupported schedule type: {job.schedule_type}")


def parse_time_of_day(time_of_day: str | None) -> tuple[int, int]:
    if not time_of_day:
        raise ValueError("time_of_day is required for daily/weekday schedules")

    parts = time_of_day.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {time_of_day}")

    hour = int(parts[0])
    minute = int(parts[1])

    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError(f"Invalid time value: {time_of_day}")

    return hour, minute
