"""Execution - transaction monitoring and failure analysis."""

from .failures import (
    RETRY_STRATEGIES,
    FailureAnalysis,
    FailureCategory,
    FailureGroup,
    RetryStrategy,
    analyze_failures,
    classify,
    group_failures,
    is_retryable,
    strategy_for,
)
from .monitor import TransactionMonitor

__all__ = [
    "TransactionMonitor",
    "FailureCategory",
    "FailureGroup",
    "FailureAnalysis",
    "RetryStrategy",
    "RETRY_STRATEGIES",
    "classify",
    "strategy_for",
    "is_retryable",
    "group_failures",
    "analyze_failures",
]
