"""
Pydantic configuration models for SearchReindex.

Everything under app.yaml. The search section describes the index
layout; the rest configures the runner, scheduler, database and logs.
"""

from __future__ import annotations

from datetime import time
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class Stage(str, Enum):
    """Read stage passed to document fetchers."""

    LIVE = "live"
    DRAFT = "draft"


class SourceKind(str, Enum):
    """How documents of a content type are fetched."""

    TABLE = "table"
    NONE = "none"


class ScheduleType(str, Enum):
    """How often a scheduled reindex fires."""

    DAILY = "daily"
    WEEKDAY = "weekday"
    HOURLY = "hourly"
    CRON = "cron"


class RunStatus(str, Enum):
    """Reindex run lifecycle status."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# =============================================================================
# Search Configuration
# =============================================================================


class IndexDefinition(BaseModel):
    """A physical search index and the content types written to it."""

    content_types: list[str] = Field(
        default_factory=list,
        description="Content types whose documents are written to this index",
    )
    enabled: bool = Field(
        default=True,
        description="Whether this index receives writes",
    )

    @field_validator("content_types")
    @classmethod
    def strip_content_types(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]


class SourceConfig(BaseModel):
    """Where documents of one content type come from."""

    kind: SourceKind = Field(
        default=SourceKind.TABLE,
        description="Fetcher implementation for this content type",
    )


class SearchConfig(BaseModel):
    """Index layout and reindex defaults."""

    batch_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Default documents per reindex step",
    )
    stage: Stage = Field(
        default=Stage.LIVE,
        description="Stage that reindex runs read documents from",
    )
    indexes: dict[str, IndexDefinition] = Field(
        default_factory=dict,
        description="Physical indexes keyed by name",
    )
    sources: dict[str, SourceConfig] = Field(
        default_factory=dict,
        description="Document sources keyed by content type",
    )


# =============================================================================
# Runner Configuration
# =============================================================================


class RunnerConfig(BaseModel):
    """Retry behaviour for failing reindex steps."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Attempts per step before the run is marked FAILED",
    )
    min_wait: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum wait between attempts in seconds",
    )
    max_wait: float = Field(
        default=30.0,
        ge=0.0,
        description="Maximum wait between attempts in seconds",
    )


# =============================================================================
# Scheduler Configuration
# =============================================================================


class ScheduleConfig(BaseModel):
    """A recurring reindex, optionally scoped to content types and indexes."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Schedule name, also used for its lock",
    )
    enabled: bool = Field(
        default=True,
        description="Paused schedules are kept but never fire",
    )
    content_types: list[str] = Field(
        default_factory=list,
        description="Content types to reindex (empty = all)",
    )
    indexes: list[str] = Field(
        default_factory=list,
        description="Indexes to restrict writes to (empty = all)",
    )
    batch_size: int | None = Field(
        default=None,
        ge=1,
        description="Batch size override (default: search.batch_size)",
    )
    schedule_type: ScheduleType = Field(
        default=ScheduleType.DAILY,
        description="hourly, daily, weekday or cron",
    )
    time_of_day: time = Field(
        default=time(3, 0),
        description="HH:MM start time for daily and weekday schedules",
    )
    cron_expression: str | None = Field(
        default=None,
        description="Crontab line for cron schedules",
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone the trigger is evaluated in",
    )
    jitter_minutes: int = Field(
        default=0,
        ge=0,
        le=60,
        description="Spread start times over this many minutes",
    )
    max_runtime_minutes: int = Field(
        default=120,
        ge=1,
        le=1440,
        description="Minutes a scheduled run may go without finishing a step before its lock lapses",
    )


class SchedulerConfig(BaseModel):
    """The scheduler process and the schedules it syncs on startup."""

    enabled: bool = Field(
        default=True,
        description="Run no schedules at all when false",
    )
    datastore_url: str = Field(
        default="sqlite:///data/schedules.db",
        description="Database URL for the scheduler's own data store",
    )
    schedules: list[ScheduleConfig] = Field(
        default_factory=list,
        description="Schedules synced into the database by `schedule sync`",
    )


# =============================================================================
# Database Configuration
# =============================================================================


class DatabaseConfig(BaseModel):
    """Where documents, runs and checkpoints are stored."""

    url: str = Field(
        default="sqlite:///data/searchreindex.db",
        description="SQLAlchemy URL of the reindex database",
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement",
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Pool size for server databases",
    )


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Console level: DEBUG, INFO, WARNING or ERROR",
    )
    file: Path | None = Field(
        default=Path("logs/searchreindex.log"),
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Write the log file as JSON lines",
    )
    rich_console: bool = Field(
        default=True,
        description="Pretty console output with run prefixes",
    )


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """The whole of app.yaml. Every section has working defaults."""

    config_dir: Path = Field(
        default=Path("configs"),
        description="Directory holding app.yaml",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for SQLite files",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    def ensure_directories(self) -> None:
        """Create the config, data and log directories."""
        for dir_path in [self.config_dir, self.data_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

        if self.logging.file:
            self.logging.file.parent.mkdir(parents=True, exist_ok=True)
