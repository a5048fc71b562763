"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Documents, the database index, runs, schedules and locks."""

    # Source documents table
    op.create_table(
        "source_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=False),
        sa.Column("source_id", sa.String(length=200), nullable=False),
        sa.Column("title", sa.String(length=1000), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("fields", sa.JSON(), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("content_type", "source_id", name="uq_source_document_type_id"),
    )
    op.create_index("ix_source_documents_content_type", "source_documents", ["content_type"])
    op.create_index(
        "ix_source_document_type_published",
        "source_documents",
        ["content_type", "published"],
    )

    # Indexed documents table
    op.create_table(
        "indexed_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("index_name", sa.String(length=100), nullable=False),
        sa.Column("document_id", sa.String(length=300), nullable=False),
        sa.Column("content_type", sa.String(length=100), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("write_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("indexed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("index_name", "document_id", name="uq_indexed_document_index_doc"),
    )
    op.create_index("ix_indexed_documents_index_name", "indexed_documents", ["index_name"])

    # Scheduled jobs table
    op.create_table(
        "scheduled_jobs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("content_types_json", sa.JSON(), nullable=True),
        sa.Column("indexes_json", sa.JSON(), nullable=True),
        sa.Column("batch_size", sa.Integer(), nullable=True),
        sa.Column("schedule_type", sa.String(length=50), nullable=False, server_default="daily"),
        sa.Column("time_of_day", sa.String(length=10), nullable=True),
        sa.Column("cron_expression", sa.String(length=100), nullable=True),
        sa.Column("timezone", sa.String(length=50), server_default="UTC"),
        sa.Column("jitter_minutes", sa.Integer(), server_default="0"),
        sa.Column("max_runtime_minutes", sa.Integer(), server_default="120"),
        sa.Column("last_run_at", sa.DateTime(), nullable=True),
        sa.Column("last_status", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scheduled_jobs_name", "scheduled_jobs", ["name"], unique=True)

    # Reindex runs table
    op.create_table(
        "reindex_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("run_type", sa.String(length=50), nullable=False, server_default="manual"),
        sa.Column("scheduled_job_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="RUNNING"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("last_step_at", sa.DateTime(), nullable=True),
        sa.Column("scope", sa.JSON(), nullable=True),
        sa.Column("state", sa.JSON(), nullable=True),
        sa.Column("total_steps", sa.Integer(), server_default="0"),
        sa.Column("completed_steps", sa.Integer(), server_default="0"),
        sa.Column("attempts", sa.Integer(), server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_traceback", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["scheduled_job_id"], ["scheduled_jobs.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_reindex_runs_status", "reindex_runs", ["status"])
    op.create_index("ix_reindex_runs_started_at", "reindex_runs", ["started_at"])

    # Run locks table
    op.create_table(
        "run_locks",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("lock_name", sa.String(length=100), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("holder_id", sa.String(length=100), nullable=False),
        sa.Column("run_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lock_name"),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("run_locks")
    op.drop_table("reindex_runs")
    op.drop_table("scheduled_jobs")
    op.drop_table("indexed_documents")
    op.drop_table("source_documents")
