"""
Logging for SearchReindex.

Console output goes through Rich; the log file gets one JSON object per
line. Records carry reindex context (run, content type, index, offset,
step) as attributes so both outputs can show where a message came from.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

if TYPE_CHECKING:
    from rich.console import Console


# Record attributes copied into JSON lines and console prefixes
CONTEXT_FIELDS = ("run_id", "content_type", "index", "offset", "step")

# Third-party loggers that are only interesting when debugging
NOISY_LOGGERS = ("apscheduler", "sqlalchemy.engine", "alembic")

_LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

# (context key, label, Rich colour) for console prefixes
_PREFIXES = (
    ("run_id", "[run {}]", "cyan"),
    ("content_type", "[{}]", "magenta"),
    ("index", "[{}]", "blue"),
)


def json_dumps(obj: Any) -> str:
    """orjson to str, falling back to str() for datetimes, paths and enums."""
    return orjson.dumps(obj, default=str).decode("utf-8")


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


# =============================================================================
# Formatters and Handlers
# =============================================================================


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_of(record),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json_dumps(log_data)


class RichConsoleHandler(logging.Handler):
    """Prints records to a Rich console, prefixed with their run context."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        from rich.markup import escape

        try:
            message = escape(self.format(record))
            style = _LEVEL_STYLES.get(record.levelno, "default")

            context = _context_of(record)
            prefix = ""
            for key, label, color in _PREFIXES:
                if key in context:
                    text = escape(label.format(context[key]))
                    prefix += f"[{color}]{text}[/{color}] "

            self.console.print(f"{prefix}[{style}]{message}[/{style}]", highlight=False)

            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the searchreindex logger tree.

    Safe to call more than once: existing handlers are replaced.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: File that receives every record at DEBUG and above
        json_format: Write JSON lines instead of plain text to the file
        rich_console: Use Rich for console output

    Returns:
        The root "searchreindex" logger
    """
    numeric_level = getattr(logging, level.upper())

    logger = logging.getLogger("searchreindex")
    logger.setLevel(logging.DEBUG if log_file else numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        if json_format:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        logger.addHandler(file_handler)

    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the "searchreindex." namespace."""
    if name:
        return logging.getLogger(f"searchreindex.{name}")
    return logging.getLogger("searchreindex")


# =============================================================================
# Contextual Logging
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Adds fixed reindex context (see CONTEXT_FIELDS) to every record.

    Context passed per call through ``extra=`` wins over the fixed values.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        unknown = sorted(set(context) - set(CONTEXT_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context field(s): {', '.join(unknown)}")
        super().__init__(logger, {k: v for k, v in context.items() if v is not None})

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextualLogger":
        """Copy of this logger with more (or replaced) context."""
        return ContextualLogger(self.logger, **{**self.extra, **context})


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Logger that tags records with run_id, content_type and similar fields.

    Example:
        log = get_contextual_logger("jobs.reindex", run_id=12)
        log.with_context(content_type="Page").info("Indexed %d", 40)
    """
    return ContextualLogger(get_logger(name), **context)
