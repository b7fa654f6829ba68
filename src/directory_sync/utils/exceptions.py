"""Custom exceptions for the Directory Sync tool.

Exception Hierarchy:
-------------------
DirectorySyncError (base)
├── ValidationError              # Payload or configuration validation failures
├── CyclicDependencyError        # Circular parent references in a hierarchy
├── TransactionTimeoutError      # Transaction did not reach a terminal state in time
└── DirectoryAPIError (base for API errors, carries an error code)
    ├── DirectoryValidationError    # HTTP 400 Bad Request
    ├── DirectoryAuthenticationError  # HTTP 401 Unauthorized
    ├── DirectoryPermissionError    # HTTP 403 Forbidden
    ├── ResourceNotFoundError       # HTTP 404 Not Found
    ├── DirectoryRateLimitError     # HTTP 429 Too Many Requests
    └── DirectoryNetworkError       # No response (connection refused, DNS, timeout)

Usage Guidelines:
----------------
1. Catch specific exceptions for specific handling:
   - DirectoryAuthenticationError: check tenant id and API token
   - DirectoryPermissionError: the token's user lacks a PROVISIONING_* role
   - DirectoryNetworkError: check connectivity and the base URL

2. Use DirectorySyncError as catch-all for tool-specific errors

3. Inspect ``DirectoryAPIError.code`` when a single handler needs to branch
   on the failure kind (AUTH_ERROR, PERMISSION_ERROR, VALIDATION_ERROR,
   NOT_FOUND, RATE_LIMIT, API_ERROR, NETWORK_ERROR).
"""

from typing import Any

# Error codes attached to DirectoryAPIError instances
AUTH_ERROR = "AUTH_ERROR"
PERMISSION_ERROR = "PERMISSION_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"
NOT_FOUND = "NOT_FOUND"
RATE_LIMIT = "RATE_LIMIT"
API_ERROR = "API_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"


def classify_status(status_code: int) -> str:
    """
    Map an HTTP status code to a Directory API error code.

    Args:
        status_code: HTTP status returned by the server

    Returns:
        One of the module-level error code constants
    """
    if status_code == 401:
        return AUTH_ERROR
    if status_code == 403:
        return PERMISSION_ERROR
    if status_code == 400:
        return VALIDATION_ERROR
    if status_code == 404:
        return NOT_FOUND
    if status_code == 429:
        return RATE_LIMIT
    return API_ERROR


class DirectorySyncError(Exception):
    """Base exception for all directory sync errors."""

    pass


class ValidationError(DirectorySyncError):
    """Raised when payload or configuration validation fails."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        """
        Initialize ValidationError.

        Args:
            message: Error message.
            errors: Individual validation messages that caused this error.
        """
        super().__init__(message)
        self.errors = errors or []


class CyclicDependencyError(DirectorySyncError):
    """
    Raised when circular parent references are detected in a hierarchy.

    The dependency orderer itself never raises this: it always produces a
    complete ordering. Callers that want strict behaviour (for example the
    ``validate`` command) raise it after inspecting the diagnostic graph.
    """

    def __init__(self, message: str, cycles: list[list[str]] | None = None) -> None:
        """
        Initialize CyclicDependencyError.

        Args:
            message: Error message.
            cycles: List of detected cycles, where each cycle is a list of ids.
        """
        super().__init__(message)
        self.cycles = cycles or []


class TransactionTimeoutError(DirectorySyncError):
    """Raised when a transaction is still running after the last allowed poll."""

    def __init__(self, transaction_id: str, attempts: int, last_status: str | None = None) -> None:
        super().__init__(
            f"Transaction {transaction_id} did not finish after {attempts} status checks"
            + (f" (last status: {last_status})" if last_status else "")
        )
        self.transaction_id = transaction_id
        self.attempts = attempts
        self.last_status = last_status


class DirectoryAPIError(DirectorySyncError):
    """Base exception for Directory API errors."""

    default_code = API_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        """
        Initialize DirectoryAPIError.

        Args:
            message: Error message (server message when available).
            status_code: Optional HTTP status code.
            code: Error code; defaults to the class's code.
            details: Server-provided error payload (``errors`` list or raw body).
        """
        super().__init__(message)
        self.status_code = status_code
        self.code = code or self.default_code
        self.details = details


class DirectoryValidationError(DirectoryAPIError):
    """Raised when the server rejects a payload (400 Bad Request)."""

    default_code = VALIDATION_ERROR


class DirectoryAuthenticationError(DirectoryAPIError):
    """Raised when the tenant id / API token pair is rejected."""

    default_code = AUTH_ERROR

    def __init__(self, message: str = "Authentication failed", details: Any = None) -> None:
        """
        Initialize DirectoryAuthenticationError.

        Args:
            message: Error message (default: "Authentication failed").
            details: Server-provided error payload.
        """
        super().__init__(message, status_code=401, details=details)


class DirectoryPermissionError(DirectoryAPIError):
    """Raised when the authenticated user lacks a required role (403 Forbidden)."""

    default_code = PERMISSION_ERROR


class ResourceNotFoundError(DirectoryAPIError):
    """Raised when a transaction, job or entity cannot be found."""

    default_code = NOT_FOUND

    def __init__(self, resource_type: str, identifier: str, details: Any = None) -> None:
        """
        Initialize ResourceNotFoundError.

        Args:
            resource_type: Type of resource that wasn't found.
            identifier: Identifier used to look the resource up.
            details: Server-provided error payload.
        """
        super().__init__(
            f"{resource_type} not found: {identifier}", status_code=404, details=details
        )
        self.resource_type = resource_type
        self.identifier = identifier


class DirectoryRateLimitError(DirectoryAPIError):
    """Raised when the Directory API rate limit is hit."""

    default_code = RATE_LIMIT

    def __init__(self, retry_after: int) -> None:
        """
        Initialize DirectoryRateLimitError.

        Args:
            retry_after: Seconds to wait before retrying.
        """
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s", status_code=429)
        self.retry_after = retry_after


class DirectoryNetworkError(DirectoryAPIError):
    """Raised when the Directory API cannot be reached at all."""

    default_code = NETWORK_ERROR

    def __init__(
        self,
        message: str = "Network error - unable to reach the Directory API",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.original_error = original_error
