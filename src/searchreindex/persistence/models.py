"""
SQLAlchemy ORM models for SearchReindex.

Tables:
- source_documents: what gets indexed, one row per content type and id
- indexed_documents: the database-backed search index
- reindex_runs: one row per run, with its checkpoint in `state`
- scheduled_jobs: recurring runs and their last result
- run_locks: one live row per scheduled job that is running
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Declarative base shared by every table."""

    type_annotation_map = {
        dict[str, Any]: JSON,
    }


# =============================================================================
# Mixins
# =============================================================================


class TimestampMixin:
    """created_at on insert, updated_at on every update."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        default=None,
        onupdate=datetime.utcnow,
        nullable=True,
    )


# =============================================================================
# Source Document Model
# =============================================================================


class SourceDocument(Base, TimestampMixin):
    """A record of some content type that can be written to the search index."""

    __tablename__ = "source_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(200), nullable=False)

    title: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    fields: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Unpublished records are only visible to draft-stage fetches
    published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("content_type", "source_id", name="uq_source_document_type_id"),
        Index("ix_source_document_type_published", "content_type", "published"),
    )

    def __repr__(self) -> str:
        return f"<SourceDocument(id={self.id}, content_type='{self.content_type}', source_id='{self.source_id}')>"


# =============================================================================
# Indexed Document Model
# =============================================================================


class IndexedDocument(Base):
    """A document as written to one physical index."""

    __tablename__ = "indexed_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    index_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    document_id: Mapped[str] = mapped_column(String(300), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)

    payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    write_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    indexed_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("index_name", "document_id", name="uq_indexed_document_index_doc"),
    )

    def __repr__(self) -> str:
        return f"<IndexedDocument(index='{self.index_name}', document_id='{self.document_id}')>"


# =============================================================================
# Reindex Run Model
# =============================================================================


class ReindexRun(Base):
    """Execution record for a reindex run, holding its checkpoint."""

    __tablename__ = "reindex_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    run_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="manual",  # manual, scheduled
    )
    scheduled_job_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("scheduled_jobs.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="RUNNING",
        index=True,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True,
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_step_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Caller intent and resumable progress
    scope: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    state: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Progress mirror for listing without decoding state
    total_steps: Mapped[int] = mapped_column(Integer, default=0)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)

    # Failures
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_traceback: Mapped[str | None] = mapped_column(Text, nullable=True)

    scheduled_job: Mapped["ScheduledJob | None"] = relationship(
        "ScheduledJob",
        back_populates="runs",
    )

    @property
    def duration_seconds(self) -> float | None:
        """Seconds from start to finish, None while the run is open."""
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def __repr__(self) -> str:
        return f"<ReindexRun(id={self.id}, status='{self.status}', steps={self.completed_steps}/{self.total_steps})>"


# =============================================================================
# Scheduled Job Model
# =============================================================================


class ScheduledJob(Base, TimestampMixin):
    """A recurring reindex. APScheduler keeps its own copy of the trigger."""

    __tablename__ = "scheduled_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Reindex scope
    content_types_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    indexes_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    batch_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Trigger
    schedule_type: Mapped[str] = mapped_column(String(50), nullable=False, default="daily")
    time_of_day: Mapped[str | None] = mapped_column(String(10), nullable=True)  # HH:MM
    cron_expression: Mapped[str | None] = mapped_column(String(100), nullable=True)
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    jitter_minutes: Mapped[int] = mapped_column(Integer, default=0)

    max_runtime_minutes: Mapped[int] = mapped_column(Integer, default=120)

    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    runs: Mapped[list["ReindexRun"]] = relationship(
        "ReindexRun",
        back_populates="scheduled_job",
    )

    def __repr__(self) -> str:
        return f"<ScheduledJob(id={self.id}, name='{self.name}', enabled={self.enabled})>"


# =============================================================================
# Lock Model
# =============================================================================


class RunLock(Base):
    """Heartbeat lock preventing overlapping runs of one scheduled job."""

    __tablename__ = "run_locks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lock_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    holder_id: Mapped[str] = mapped_column(String(100), nullable=False)  # Process identifier
    run_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # Run being driven

    def __repr__(self) -> str:
        return f"<RunLock(name='{self.lock_name}', holder='{self.holder_id}')>"
