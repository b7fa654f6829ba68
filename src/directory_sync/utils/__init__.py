"""Utility functions and exceptions."""

from .exceptions import (
    CyclicDependencyError,
    DirectoryAPIError,
    DirectoryAuthenticationError,
    DirectoryNetworkError,
    DirectoryPermissionError,
    DirectoryRateLimitError,
    DirectorySyncError,
    DirectoryValidationError,
    ResourceNotFoundError,
    TransactionTimeoutError,
    ValidationError,
    classify_status,
)

__all__ = [
    "DirectorySyncError",
    "ValidationError",
    "CyclicDependencyError",
    "TransactionTimeoutError",
    "DirectoryAPIError",
    "DirectoryValidationError",
    "DirectoryAuthenticationError",
    "DirectoryPermissionError",
    "ResourceNotFoundError",
    "DirectoryRateLimitError",
    "DirectoryNetworkError",
    "classify_status",
]
