"""
Database engine and session handling.

One process-wide engine backs every repository. The reindex runner, the
database index service and the table fetchers each open short sessions
through get_session(); none of them holds a session across a step.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

DEFAULT_DATABASE_URL = "sqlite:///data/searchreindex.db"

# Milliseconds a SQLite connection waits for another writer before failing
SQLITE_BUSY_TIMEOUT_MS = 30000


# =============================================================================
# Engine State
# =============================================================================

_engine: Engine | None = None
_engine_url: str | None = None
_session_factory: sessionmaker[Session] | None = None


# =============================================================================
# URL Helpers
# =============================================================================


def get_async_url(url: str) -> str:
    """Map a sync URL onto its async driver, for the scheduler data store.

    sqlite:///x.db -> sqlite+aiosqlite:///x.db
    postgresql://  -> postgresql+asyncpg://
    """
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + url[len("sqlite:///"):]
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def ensure_sqlite_directory(url: str) -> None:
    """Create the directory holding a file-backed SQLite database."""
    if not url.startswith("sqlite:///"):
        return

    db_path = url[len("sqlite:///"):]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def _configure_sqlite(engine: Engine) -> None:
    """Pragmas for concurrent runners sharing one SQLite file.

    WAL lets status queries read while a step writes; the busy timeout
    makes a second writer wait instead of failing with "database is locked".
    """

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
        cursor.close()


# =============================================================================
# Engine
# =============================================================================


def get_engine(
    url: str | None = None,
    echo: bool = False,
    pool_size: int = 5,
) -> Engine:
    """Return the process engine, creating it on first use.

    Args:
        url: Database URL. None reuses the current engine, or binds the
            default URL if there is none. A URL different from the bound
            one disposes the old engine and binds the new one.
        echo: Log SQL statements
        pool_size: Connection pool size (ignored for SQLite)
    """
    global _engine, _engine_url, _session_factory

    if _engine is not None and (url is None or url == _engine_url):
        return _engine

    if _engine is not None:
        dispose_engines()

    url = url or DEFAULT_DATABASE_URL
    ensure_sqlite_directory(url)

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
        _configure_sqlite(engine)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=10,
            pool_pre_ping=True,
        )

    _engine = engine
    _engine_url = url
    _session_factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    return engine


def table_names() -> set[str]:
    """Names of the tables that exist in the bound database."""
    return set(inspect(get_engine()).get_table_names())


# =============================================================================
# Sessions
# =============================================================================


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Session that commits when the block exits cleanly and rolls back otherwise.

    Usage:
        with get_session() as session:
            RunRepository(session).get_by_id(run_id)
    """
    get_engine()
    assert _session_factory is not None

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_sync_session() -> Session:
    """Unmanaged session; the caller commits and closes it."""
    get_engine()
    assert _session_factory is not None
    return _session_factory()


# =============================================================================
# Schema
# =============================================================================


def init_db(url: str | None = None, echo: bool = False) -> None:
    """Create any missing tables. Alembic migrations are the production path."""
    Base.metadata.create_all(bind=get_engine(url, echo=echo))


def drop_db(url: str | None = None) -> None:
    """Drop every table, including reindex checkpoints."""
    Base.metadata.drop_all(bind=get_engine(url))


def dispose_engines() -> None:
    """Close pooled connections and forget the bound engine."""
    global _engine, _engine_url, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    _session_factory = None
