"""Structured logging configuration with custom verbosity levels.

Levels:
- INFO (20): Summary only (default)
- VERBOSE (15): Request-level detail
- DEBUG (10): Full trace including payload sizes
- TRACE (5): Everything (extremely verbose)

Log files rotate at 5 MiB with five backups. An optional second file receives
ERROR and above only, so failures can be reviewed without the noise.
"""

import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog

from ..constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES, SERVICE_NAME

# Context variables for request tracing
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Custom log levels
TRACE = 5  # Below DEBUG, for extremely verbose output
VERBOSE = 15  # Between DEBUG and INFO, for request-level detail

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = structlog.get_logger(__name__)


class LogContext:
    """
    Context manager for adding context to logs.

    Usage:
        with LogContext(transaction_id="123"):
            logger.info("Queueing departments")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.new_context = kwargs
        self.token = None

    def __enter__(self) -> "LogContext":
        """Enter context and merge new values."""
        current = _log_context.get().copy()
        current.update(self.new_context)
        self.token = _log_context.set(current)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context and restore previous values."""
        if self.token:
            _log_context.reset(self.token)


def clear_all_context() -> None:
    """Clear all context variables."""
    _log_context.set({})


def _context_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor to inject context variables."""
    context = _log_context.get()
    if context:
        event_dict.update(context)
    return event_dict


def _service_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


LOG_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level: str) -> int:
    """
    Get numeric log level from string.

    Args:
        level: Level name (TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Numeric log level (INFO for unknown names)
    """
    return LOG_LEVELS.get(level.upper(), logging.INFO)


def _rotating_handler(path: str | Path, max_bytes: int, backup_count: int) -> logging.Handler:
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: str | Path | None = None,
    error_log_file: str | Path | None = None,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> None:
    """
    Configure structured logging.

    Args:
        level: Logging level (TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output logs in JSON format
        log_file: Optional combined log file (rotated)
        error_log_file: Optional ERROR-and-above log file (rotated)
        max_bytes: Rotation size for log files
        backup_count: Number of rotated files to keep
    """
    log_level = get_log_level(level)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(_rotating_handler(log_file, max_bytes, backup_count))
    if error_log_file:
        error_handler = _rotating_handler(error_log_file, max_bytes, backup_count)
        error_handler.setLevel(logging.ERROR)
        handlers.append(error_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,  # Force reconfiguration even if logging has been configured
    )
    logging.getLogger().setLevel(log_level)

    # httpx logs every request at INFO; keep it for VERBOSE and below
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _context_processor,
        _service_processor,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


# -----------------------------------------------------------------------------
# Domain helpers
# -----------------------------------------------------------------------------


def log_transaction(action: str, transaction_id: str, **details: Any) -> None:
    """Log a transaction lifecycle event (created, committed, ...)."""
    logger.info(f"Transaction {action}", transaction_id=transaction_id, action=action, **details)


def progress_percentage(completed: int, total: int) -> int:
    """Rounded completion percentage; 0 when nothing is queued."""
    if total <= 0:
        return 0
    return round(completed / total * 100)


def log_progress(transaction_id: str, completed: int, total: int, message: str = "") -> None:
    """Log transaction progress as counts and a percentage."""
    logger.info(
        "Transaction progress",
        transaction_id=transaction_id,
        completed=completed,
        total=total,
        percentage=f"{progress_percentage(completed, total)}%",
        message=message,
    )


def log_sync_result(operation: str, total: int, successful: int, failed: int) -> None:
    """Log the outcome of a sync; WARNING when anything failed."""
    log = logger.warning if failed > 0 else logger.info
    log(
        f"{operation} completed",
        operation=operation,
        total=total,
        successful=successful,
        failed=failed,
        success_rate=f"{progress_percentage(successful, total)}%",
    )


class Timer:
    """Elapsed wall-clock time in milliseconds."""

    def __init__(self) -> None:
        self.start = time.perf_counter()
        self.duration_ms: float | None = None

    def stop(self) -> float:
        self.duration_ms = (time.perf_counter() - self.start) * 1000
        return self.duration_ms


@contextmanager
def timed(label: str, **details: Any) -> Iterator[Timer]:
    """
    Time a block and log its duration.

    Usage:
        with timed("Full sync") as timer:
            await client.full_sync(data)
        print(timer.duration_ms)
    """
    timer = Timer()
    try:
        yield timer
    finally:
        duration = timer.stop()
        logger.info(f"Timer: {label}", label=label, duration_ms=round(duration, 1), **details)
