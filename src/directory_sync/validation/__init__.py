"""Validation of sync payloads, department hierarchies and configuration."""

from .validator import (
    HierarchyValidationResult,
    RecordErrors,
    SyncValidationResult,
    clean_department_data,
    clean_user_data,
    is_valid_email,
    is_valid_phone_number,
    is_valid_url,
    validate_auth_config,
    validate_department,
    validate_department_hierarchy,
    validate_pagination,
    validate_sync_data,
    validate_user,
    validate_user_type,
)

__all__ = [
    "validate_user",
    "validate_user_type",
    "validate_department",
    "validate_sync_data",
    "validate_department_hierarchy",
    "validate_auth_config",
    "validate_pagination",
    "clean_user_data",
    "clean_department_data",
    "is_valid_email",
    "is_valid_phone_number",
    "is_valid_url",
    "SyncValidationResult",
    "HierarchyValidationResult",
    "RecordErrors",
]
