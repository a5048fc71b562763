"""
Repository pattern for database operations.

Provides clean abstractions over the source documents, the local index
store and the reindex run records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import and_, delete, func, select
from sqlalchemy.orm import Session

from .models import IndexedDocument, ReindexRun, SourceDocument


# =============================================================================
# Source Document Repository
# =============================================================================


class SourceDocumentRepository:
    """Repository for SourceDocument operations."""

    def __init__(self, session: Session):
        self.session = session

    def _visible(self, content_type: str, published_only: bool) -> list[Any]:
        conditions = [SourceDocument.content_type == content_type]
        if published_only:
            conditions.append(SourceDocument.published == True)  # noqa: E712
        return conditions

    def count(self, content_type: str, published_only: bool = True) -> int:
        """Count documents of a content type."""
        stmt = select(func.count(SourceDocument.id)).where(
            and_(*self._visible(content_type, published_only))
        )
        return int(self.session.execute(stmt).scalar_one())

    def page(
        self,
        content_type: str,
        offset: int = 0,
        limit: int | None = None,
        published_only: bool = True,
    ) -> Sequence[SourceDocument]:
        """Get documents ordered by primary key, starting at offset.

        A limit of None reads to the end.
        """
        stmt = (
            select(SourceDocument)
            .where(and_(*self._visible(content_type, published_only)))
            .order_by(SourceDocument.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.execute(stmt).scalars().all()

    def upsert(
        self,
        content_type: str,
        source_id: str,
        title: str | None = None,
        body: str | None = None,
        fields: dict[str, Any] | None = None,
        published: bool = True,
    ) -> tuple[SourceDocument, bool]:
        """Create or update a source document.

        Returns:
            Tuple of (document, created) where created is True if new
        """
        stmt = select(SourceDocument).where(
            and_(
                SourceDocument.content_type == content_type,
                SourceDocument.source_id == source_id,
            )
        )
        existing = self.session.execute(stmt).scalar_one_or_none()

        if existing:
            existing.title = title
            existing.body = body
            existing.fields = fields
            existing.published = published
            self.session.flush()
            return existing, False

        document = SourceDocument(
            content_type=content_type,
            source_id=source_id,
            title=title,
            body=body,
            fields=fields,
            published=published,
        )
        self.session.add(document)
        self.session.flush()
        return document, True

    def count_by_content_type(self) -> dict[str, int]:
        """Count all documents grouped by content type."""
        stmt = select(
            SourceDocument.content_type,
            func.count(SourceDocument.id),
        ).group_by(SourceDocument.content_type)
        return {content_type: count for content_type, count in self.session.execute(stmt).all()}


# =============================================================================
# Indexed Document Repository
# =============================================================================


class IndexedDocumentRepository:
    """Repository for the local index store."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, index_name: str, document_id: str) -> IndexedDocument | None:
        stmt = select(IndexedDocument).where(
            and_(
                IndexedDocument.index_name == index_name,
                IndexedDocument.document_id == document_id,
            )
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def upsert(
        self,
        index_name: str,
        document_id: str,
        content_type: str,
        payload: dict[str, Any],
    ) -> tuple[IndexedDocument, bool]:
        """Write a document to an index, replacing any previous version.

        Returns:
            Tuple of (row, created) where created is True if new
        """
        existing = self.get(index_name, document_id)
        now = datetime.utcnow()

        if existing:
            existing.payload = payload
            existing.content_type = content_type
            existing.write_count += 1
            existing.indexed_at = now
            return existing, False

        row = IndexedDocument(
            index_name=index_name,
            document_id=document_id,
            content_type=content_type,
            payload=payload,
            write_count=1,
            indexed_at=now,
        )
        self.session.add(row)
        self.session.flush()
        return row, True

    def remove(self, index_name: str, document_ids: Iterable[str]) -> int:
        """Remove documents from an index. Returns count removed."""
        ids = list(document_ids)
        if not ids:
            return 0
        stmt = delete(IndexedDocument).where(
            and_(
                IndexedDocument.index_name == index_name,
                IndexedDocument.document_id.in_(ids),
            )
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def document_ids(self, index_name: str) -> set[str]:
        stmt = select(IndexedDocument.document_id).where(IndexedDocument.index_name == index_name)
        return set(self.session.execute(stmt).scalars().all())

    def count_by_index(self) -> dict[str, int]:
        """Count indexed documents grouped by index."""
        stmt = select(
            IndexedDocument.index_name,
            func.count(IndexedDocument.id),
        ).group_by(IndexedDocument.index_name)
        return {name: count for name, count in self.session.execute(stmt).all()}


# =============================================================================
# Run Repository
# =============================================================================


class RunRepository:
    """Repository for ReindexRun operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        title: str,
        scope: dict[str, Any],
        run_type: str = "manual",
        scheduled_job_id: int | None = None,
    ) -> ReindexRun:
        """Create a new reindex run."""
        run = ReindexRun(
            title=title,
            scope=scope,
            run_type=run_type,
            scheduled_job_id=scheduled_job_id,
            status="RUNNING",
        )
        self.session.add(run)
        self.session.flush()
        return run

    def get_by_id(self, run_id: int) -> ReindexRun | None:
        """Get run by ID."""
        return self.session.get(ReindexRun, run_id)

    def save_state(self, run: ReindexRun, state: dict[str, Any]) -> None:
        """Persist the run's checkpoint and mirror its counters."""
        run.state = state
        run.total_steps = int(state.get("total_steps", 0))
        run.completed_steps = int(state.get("completed_steps", 0))
        run.last_step_at = datetime.utcnow()
        run.error_message = None
        run.error_traceback = None
        run.attempts = 0

    def record_failure(
        self,
        run: ReindexRun,
        error_message: str,
        error_traceback: str | None = None,
    ) -> int:
        """Record a failed step attempt. Returns the attempt count."""
        run.attempts = (run.attempts or 0) + 1
        run.error_message = error_message
        run.error_traceback = error_traceback
        return run.attempts

    def complete(self, run: ReindexRun, status: str = "COMPLETED") -> None:
        """Mark a run as finished."""
        run.status = status
        run.finished_at = datetime.utcnow()

    def get_recent(self, limit: int = 20, status: str | None = None) -> Sequence[ReindexRun]:
        """Get recent runs."""
        stmt = select(ReindexRun)

        if status is not None:
            stmt = stmt.where(ReindexRun.status == status)

        stmt = stmt.order_by(ReindexRun.started_at.desc(), ReindexRun.id.desc())
        stmt = stmt.limit(limit)

        return self.session.execute(stmt).scalars().all()
