"""Configuration loading and validation."""

from .indexes import IndexConfiguration
from .loader import (
    ConfigError,
    check_search_layout,
    load_app_config,
    resolve_config_path,
    validate_app_config_file,
)
from .models import (
    # Enums
    RunStatus,
    ScheduleType,
    SourceKind,
    Stage,
    # Config models
    AppConfig,
    DatabaseConfig,
    IndexDefinition,
    LoggingConfig,
    RunnerConfig,
    ScheduleConfig,
    SchedulerConfig,
    SearchConfig,
    SourceConfig,
)

__all__ = [
    # Enums
    "RunStatus",
    "ScheduleType",
    "SourceKind",
    "Stage",
    # Config models
    "AppConfig",
    "DatabaseConfig",
    "IndexDefinition",
    "LoggingConfig",
    "RunnerConfig",
    "ScheduleConfig",
    "SchedulerConfig",
    "SearchConfig",
    "SourceConfig",
    # Runtime view
    "IndexConfiguration",
    # Loaders
    "ConfigError",
    "check_search_layout",
    "load_app_config",
    "resolve_config_path",
    "validate_app_config_file",
]
