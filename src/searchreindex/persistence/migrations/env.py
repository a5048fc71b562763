"""
Alembic environment for the SearchReindex schema.

Database URL, first match wins:
1. config.attributes["database_url"] (set by `searchreindex db migrate`)
2. `alembic -x url=...`
3. $SEARCHREINDEX_DATABASE_URL
4. database.url from app.yaml
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Connection

from searchreindex.core.config.loader import load_app_config
from searchreindex.persistence.db import ensure_sqlite_directory
from searchreindex.persistence.models import Base

config = context.config

# `searchreindex db migrate` runs without an ini file and keeps its own logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    url = config.attributes.get("database_url")
    if url:
        return url

    url = context.get_x_argument(as_dictionary=True).get("url")
    if url:
        return url

    url = os.environ.get("SEARCHREINDEX_DATABASE_URL")
    if url:
        return url

    return load_app_config().database.url


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite can only ALTER TABLE through batch copies
        render_as_batch=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of touching a database."""
    _configure(url=get_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})

    with context.begin_transaction():
        context.run_migrations()


def _run_with(connection: Connection) -> None:
    _configure(connection=connection)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    ensure_sqlite_directory(url)

    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run_with(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
