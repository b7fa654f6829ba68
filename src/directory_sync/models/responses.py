"""Pydantic models for Directory API responses.

Design Principles:
- Graceful degradation: extra="allow" for unknown fields
- Tolerant defaults: counters default to 0, lists to empty
- camelCase wire names via alias generator, snake_case attributes

Usage:
    status = TransactionStatus.model_validate(response_json)
    if status.state is TransactionState.COMPLETED:
        ...
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TransactionState(str, Enum):
    """Server-side transaction lifecycle states."""

    OPEN = "OPEN"  # Checkpoint created, operations may be queued
    PROCESSING = "PROCESSING"  # Committed, background job running
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionState.COMPLETED, TransactionState.FAILED)


def parse_state(value: str | None) -> TransactionState | None:
    """Parse a status string, returning None for unknown values."""
    if not value:
        return None
    try:
        return TransactionState(value.upper())
    except ValueError:
        return None


class ResponseModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Checkpoint(ResponseModel):
    """Response from POST /provisioning/directory/checkpoint."""

    transaction_id: str


class QueueResult(ResponseModel):
    """Response from queueing or directly processing departments/users."""

    operations_queued: int | None = None
    processed: int | None = None
    successful_operations: int | None = None
    errors: list[Any] = Field(default_factory=list)


class OperationMessage(ResponseModel):
    message: str | None = None


class OperationError(ResponseModel):
    """One failed operation as reported in a commit result."""

    messages: list[OperationMessage] = Field(default_factory=list)
    paths: list[str] = Field(default_factory=list)

    @property
    def first_message(self) -> str:
        for message in self.messages:
            if message.message:
                return message.message
        return "Unknown error"


class CommitResult(ResponseModel):
    """Response from POST /provisioning/directory/commit."""

    transaction_id: str | None = None
    job_id: str | int | None = None
    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    errors: list[OperationError] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of successful operations (100.0 for an empty transaction)."""
        if self.total_operations <= 0:
            return 100.0
        return self.successful_operations / self.total_operations * 100


class TransactionFailure(ResponseModel):
    """Detailed failure entry from a transaction status response."""

    operation_id: str | int | None = None
    operation_type: str | None = None
    operation_action: str | None = None
    entity_name: str | None = None
    external_id: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    failed_on: str | None = None
    details: dict[str, Any] | None = None


class TransactionStatus(ResponseModel):
    """Response from GET /provisioning/directory/transaction/{id}/status."""

    transaction_id: str | None = None
    transaction_status: str | None = None
    total_operations: int = 0
    completed_operations: int = 0
    failed_operations: int = 0
    completed_on: str | None = None
    failures: list[TransactionFailure] = Field(default_factory=list)

    @property
    def state(self) -> TransactionState | None:
        return parse_state(self.transaction_status)

    @property
    def progress(self) -> str:
        return f"{self.completed_operations}/{self.total_operations}"

    @property
    def success_rate(self) -> float:
        if self.total_operations <= 0:
            return 100.0
        return self.completed_operations / self.total_operations * 100


class TransactionSummary(ResponseModel):
    """One entry of GET /provisioning/directory/transactions."""

    transaction_id: str
    status: str | None = None
    operation_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    created_on: str | None = None
    created_by: str | None = None
    completed_on: str | None = None

    @property
    def state(self) -> TransactionState | None:
        return parse_state(self.status)


class TransactionList(ResponseModel):
    """Paginated transaction history."""

    transactions: list[TransactionSummary] = Field(default_factory=list)
    total_count: int = 0


class JobUpdate(ResponseModel):
    timestamp: str | None = None
    message: str | None = None


class Job(ResponseModel):
    """Background job executing a committed transaction."""

    id: str | int
    status: str | None = None
    done_percentage: float = 0
    started_on: str | None = None
    finished_on: str | None = None
    updates: list[JobUpdate] = Field(default_factory=list)
    results: dict[str, Any] | None = None
    error_message: str | None = None


class JobResponse(ResponseModel):
    """GET /job/{id} wraps the job in a ``value`` envelope."""

    value: Job


class EntryList(ResponseModel):
    """Generic ``{"entries": [...]}`` list response."""

    entries: list[dict[str, Any]] = Field(default_factory=list)
