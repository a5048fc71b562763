"""
Load app.yaml into an AppConfig.

Values may reference the environment as ${VAR} or ${VAR:-default}, which
is how deployments point the same file at different databases.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig, SourceKind

CONFIG_ENV_VAR = "SEARCHREINDEX_CONFIG"
DEFAULT_APP_CONFIG_PATH = Path("configs/app.yaml")

_ENV_PATTERN = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """app.yaml could not be read, parsed or validated."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def resolve_config_path(path: Path | str | None = None) -> Path:
    """Explicit path, then $SEARCHREINDEX_CONFIG, then configs/app.yaml."""
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_APP_CONFIG_PATH))


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}", path=path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}", path=path)
    return data


def expand_env_vars(value: Any) -> Any:
    """Substitute ${VAR} / ${VAR:-default} in every string of a YAML tree."""
    if isinstance(value, str):
        return _ENV_PATTERN.sub(
            lambda m: os.environ.get(m.group("name"), m.group("default") or ""),
            value,
        )
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def load_app_config(
    path: Path | str | None = None,
    expand_env: bool = True,
) -> AppConfig:
    """Load and validate app.yaml.

    A missing file is not an error: the defaults describe an empty search
    layout backed by data/searchreindex.db.

    Raises:
        ConfigError: If the file exists but is unreadable or invalid
    """
    path = resolve_config_path(path)

    if not path.exists():
        return AppConfig()

    data = _read_yaml(path)
    if expand_env:
        data = expand_env_vars(data)

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid app configuration in {path}",
            path=path,
            details=str(e),
        ) from e


def check_search_layout(config: AppConfig) -> list[str]:
    """Cross-field problems pydantic cannot see.

    Schedules naming unknown indexes or content types are errors, since a
    reindex with that scope would be rejected. Content types without a
    usable source are reported too; reindex runs skip them silently.
    """
    search = config.search
    problems: list[str] = []

    enabled = {name: d for name, d in search.indexes.items() if d.enabled}

    known_types: list[str] = []
    for definition in enabled.values():
        for content_type in definition.content_types:
            if content_type not in known_types:
                known_types.append(content_type)

    for content_type in known_types:
        source = search.sources.get(content_type)
        if source is None or source.kind == SourceKind.NONE:
            problems.append(f"search.sources: {content_type} has no document source and is never reindexed")

    for schedule in config.scheduler.schedules:
        for index_name in schedule.indexes:
            if index_name not in enabled:
                problems.append(f"scheduler.schedules.{schedule.name}: unknown index {index_name}")
        for content_type in schedule.content_types:
            if content_type not in known_types:
                problems.append(f"scheduler.schedules.{schedule.name}: unknown content type {content_type}")

    return problems


def validate_app_config_file(path: Path | str) -> list[str]:
    """Collect every problem in an app.yaml. An empty list means it is usable."""
    path = Path(path)

    try:
        data = expand_env_vars(_read_yaml(path))
    except ConfigError as e:
        return [str(e)]

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]

    return check_search_layout(config)
