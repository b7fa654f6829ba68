"""Observability - logging and console reporting."""

from .logger import (
    LogContext,
    clear_all_context,
    configure_logging,
    log_progress,
    log_sync_result,
    log_transaction,
    timed,
)

__all__ = [
    "configure_logging",
    "clear_all_context",
    "LogContext",
    "log_transaction",
    "log_progress",
    "log_sync_result",
    "timed",
]
