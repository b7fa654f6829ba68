"""Classification and analysis of failed transaction operations.

A committed transaction reports per-operation failures with an ``errorType``
(VALIDATION, DATA_FORMAT, NOT_FOUND, DUPLICATE, SYSTEM). Each category maps
to a retry strategy: fix-and-resubmit categories are not retryable, while
missing dependencies and transient system errors are.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from ..models.responses import TransactionFailure, TransactionStatus


class FailureCategory(str, Enum):
    """Server-reported failure categories."""

    VALIDATION = "VALIDATION"
    DATA_FORMAT = "DATA_FORMAT"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE = "DUPLICATE"
    SYSTEM = "SYSTEM"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class RetryStrategy:
    """How to react to a failure category."""

    retry: bool
    action: str
    examples: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


RETRY_STRATEGIES: dict[FailureCategory, RetryStrategy] = {
    FailureCategory.VALIDATION: RetryStrategy(
        retry=False,
        action="Fix data and resubmit",
        examples=("Duplicate external IDs", "Missing required fields", "Invalid references"),
        recommendations=(
            "Check for duplicate external IDs and missing required fields",
            "Verify parent-child relationships exist",
            "Ensure email addresses are unique",
        ),
    ),
    FailureCategory.DATA_FORMAT: RetryStrategy(
        retry=False,
        action="Correct JSON structure and field names",
        examples=("Unrecognized field names", "Invalid JSON syntax", "Wrong data types"),
        recommendations=(
            "Verify JSON field names match the expected schema",
            "Check for unrecognized fields in your payload",
            "Ensure data types match requirements",
        ),
    ),
    FailureCategory.NOT_FOUND: RetryStrategy(
        retry=True,
        action="Create missing dependencies first",
        examples=("Parent department missing", "User type not found"),
        recommendations=(
            "Create missing parent departments first",
            "Verify user types exist in the system",
            "Check external ID references",
        ),
    ),
    FailureCategory.DUPLICATE: RetryStrategy(
        retry=False,
        action="Use UPDATE instead of CREATE",
        examples=("Entity already exists", "Email already registered"),
        recommendations=(
            "Use UPDATE operations instead of CREATE for existing entities",
            "Check for duplicate entries in your source data",
        ),
    ),
    FailureCategory.SYSTEM: RetryStrategy(
        retry=True,
        action="Retry with exponential backoff",
        examples=("Database timeout", "Network errors", "Service unavailable"),
        recommendations=(
            "Contact support if these errors persist",
            "Check system status and connectivity",
        ),
    ),
}

UNKNOWN_STRATEGY = RetryStrategy(
    retry=False,
    action="Review the error message",
    recommendations=("Review the specific error messages for guidance",),
)


def classify(error_type: str | None) -> FailureCategory:
    """Map a server error type to a category (case-insensitive, UNKNOWN otherwise)."""
    if not error_type:
        return FailureCategory.UNKNOWN
    try:
        return FailureCategory(error_type.strip().upper())
    except ValueError:
        return FailureCategory.UNKNOWN


def strategy_for(error_type: str | FailureCategory | None) -> RetryStrategy:
    category = error_type if isinstance(error_type, FailureCategory) else classify(error_type)
    return RETRY_STRATEGIES.get(category, UNKNOWN_STRATEGY)


def is_retryable(error_type: str | FailureCategory | None) -> bool:
    """Whether resubmitting the failed operation unchanged can succeed."""
    return strategy_for(error_type).retry


@dataclass
class FailureGroup:
    """Failures sharing one error type."""

    error_type: str
    category: FailureCategory
    failures: list[TransactionFailure] = field(default_factory=list)

    @property
    def strategy(self) -> RetryStrategy:
        return strategy_for(self.category)

    @property
    def count(self) -> int:
        return len(self.failures)


def group_failures(failures: Iterable[TransactionFailure]) -> list[FailureGroup]:
    """
    Group failures by their reported error type.

    Groups are ordered by first appearance; failures without an error type
    are grouped under UNKNOWN.
    """
    groups: dict[str, FailureGroup] = {}
    for failure in failures:
        error_type = failure.error_type or FailureCategory.UNKNOWN.value
        group = groups.get(error_type)
        if group is None:
            group = FailureGroup(error_type=error_type, category=classify(error_type))
            groups[error_type] = group
        group.failures.append(failure)
    return list(groups.values())


@dataclass
class FailureAnalysis:
    """Summary of a transaction's outcome with per-category advice."""

    transaction_id: str | None
    status: str | None
    total_operations: int
    completed_operations: int
    failed_operations: int
    groups: list[FailureGroup] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if self.total_operations <= 0:
            return 100.0
        return self.completed_operations / self.total_operations * 100

    @property
    def has_failures(self) -> bool:
        return self.failed_operations > 0 or any(group.count for group in self.groups)

    @property
    def retryable_count(self) -> int:
        return sum(group.count for group in self.groups if group.strategy.retry)

    @property
    def recommendations(self) -> dict[str, tuple[str, ...]]:
        return {group.error_type: group.strategy.recommendations for group in self.groups}


def analyze_failures(status: TransactionStatus) -> FailureAnalysis:
    """Build a failure analysis from a transaction status response."""
    return FailureAnalysis(
        transaction_id=status.transaction_id,
        status=status.transaction_status,
        total_operations=status.total_operations,
        completed_operations=status.completed_operations,
        failed_operations=status.failed_operations,
        groups=group_failures(status.failures),
    )
