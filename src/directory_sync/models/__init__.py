"""Data models for the Directory Sync tool."""

from .directory import Department, DirectoryModel, SyncData, User, UserType
from .responses import (
    Checkpoint,
    CommitResult,
    EntryList,
    Job,
    JobResponse,
    JobUpdate,
    OperationError,
    QueueResult,
    TransactionFailure,
    TransactionList,
    TransactionState,
    TransactionStatus,
    TransactionSummary,
    parse_state,
)

__all__ = [
    # Payloads
    "DirectoryModel",
    "Department",
    "User",
    "UserType",
    "SyncData",
    # Responses
    "Checkpoint",
    "QueueResult",
    "CommitResult",
    "OperationError",
    "TransactionState",
    "TransactionStatus",
    "TransactionFailure",
    "TransactionSummary",
    "TransactionList",
    "Job",
    "JobUpdate",
    "JobResponse",
    "EntryList",
    "parse_state",
]
