"""
Pre-flight validation of Directory API payloads and client configuration.

All checks are offline: they catch malformed records before a transaction is
opened, so a batch never fails half-way on something detectable locally.
Validators accept plain mappings (camelCase keys, as loaded from JSON/YAML)
or the pydantic models from ``models.directory``.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

import structlog

from ..constants import MAX_PAGE_SIZE
from ..dependency.graph import HierarchyGraph
from ..models.directory import DirectoryModel

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]{7,20}$")


def _as_mapping(record: Any) -> Mapping[str, Any] | None:
    if isinstance(record, DirectoryModel):
        return record.to_payload()
    if isinstance(record, Mapping):
        return record
    return None


def is_valid_email(email: str) -> bool:
    """Basic e-mail shape check (something@something.tld)."""
    return isinstance(email, str) and EMAIL_PATTERN.match(email) is not None


def is_valid_phone_number(phone: str) -> bool:
    """Loose phone check: digits, spaces, dashes, parentheses, optional leading +."""
    return isinstance(phone, str) and PHONE_PATTERN.match(phone) is not None


def is_valid_url(url: str) -> bool:
    """Check that ``url`` is an absolute http(s) URL."""
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_user_type(user_type: Any) -> list[str]:
    """
    Validate one department membership of a user.

    Args:
        user_type: Mapping with departmentExternalId and userTypeId

    Returns:
        List of error messages (empty when valid)
    """
    data = _as_mapping(user_type)
    if data is None:
        return ["User type must be an object"]

    errors: list[str] = []
    if not data.get("departmentExternalId"):
        errors.append("Missing required field: departmentExternalId")
    if not data.get("userTypeId"):
        errors.append("Missing required field: userTypeId")
    return errors


def validate_user(user: Any) -> list[str]:
    """
    Validate a user record.

    Args:
        user: Mapping or User model

    Returns:
        List of error messages (empty when valid)
    """
    data = _as_mapping(user)
    if data is None:
        return ["User must be an object"]

    errors: list[str] = []

    if not data.get("externalId"):
        errors.append("Missing required field: externalId")

    email = data.get("email")
    if not email:
        errors.append("Missing required field: email")
    elif not is_valid_email(email):
        errors.append("Invalid email format")

    if not data.get("firstName"):
        errors.append("Missing required field: firstName")

    if not data.get("lastName"):
        errors.append("Missing required field: lastName")

    active = data.get("active")
    if active is None:
        errors.append("Missing required field: active")
    elif not isinstance(active, bool):
        errors.append('Field "active" must be boolean')

    user_types = data.get("userTypes")
    if not isinstance(user_types, list):
        errors.append("Missing or invalid userTypes array")
    elif not user_types:
        errors.append("User must have at least one userType")
    else:
        for index, user_type in enumerate(user_types):
            for error in validate_user_type(user_type):
                errors.append(f"userTypes[{index}]: {error}")

    phone = data.get("phoneNumber")
    if phone and not is_valid_phone_number(phone):
        errors.append("Invalid phone number format")

    return errors


def validate_department(department: Any) -> list[str]:
    """
    Validate a department record.

    Args:
        department: Mapping or Department model

    Returns:
        List of error messages (empty when valid)
    """
    data = _as_mapping(department)
    if data is None:
        return ["Department must be an object"]

    errors: list[str] = []

    if not data.get("externalId"):
        errors.append("Missing required field: externalId")

    if not data.get("departmentName"):
        errors.append("Missing required field: departmentName")

    active = data.get("active")
    if active is None:
        errors.append("Missing required field: active")
    elif not isinstance(active, bool):
        errors.append('Field "active" must be boolean')

    cascade = data.get("cascadeToChildren")
    if cascade is not None and not isinstance(cascade, bool):
        errors.append('Field "cascadeToChildren" must be boolean')

    return errors


@dataclass
class RecordErrors:
    """Validation errors for a single record of a batch."""

    index: int
    external_id: str
    errors: list[str]
    email: str | None = None

    def __str__(self) -> str:
        label = self.email or self.external_id
        return f"[{self.index}] {label}: " + "; ".join(self.errors)


@dataclass
class SyncValidationResult:
    """Outcome of validating a complete sync batch."""

    department_errors: list[RecordErrors] = field(default_factory=list)
    user_errors: list[RecordErrors] = field(default_factory=list)
    general_errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not (self.department_errors or self.user_errors or self.general_errors)

    @property
    def error_count(self) -> int:
        return (
            len(self.general_errors)
            + sum(len(entry.errors) for entry in self.department_errors)
            + sum(len(entry.errors) for entry in self.user_errors)
        )

    def messages(self) -> list[str]:
        """Flatten every error into display strings."""
        return (
            list(self.general_errors)
            + [f"Department {entry}" for entry in self.department_errors]
            + [f"User {entry}" for entry in self.user_errors]
        )


def validate_sync_data(data: Any) -> SyncValidationResult:
    """
    Validate a sync batch with ``departments`` and/or ``users`` lists.

    Args:
        data: Mapping (as loaded from a data file) or SyncData model

    Returns:
        SyncValidationResult
    """
    result = SyncValidationResult()

    if isinstance(data, DirectoryModel):
        data = data.model_dump(by_alias=True, exclude_none=True)

    if not isinstance(data, Mapping):
        result.general_errors.append("Invalid data structure")
        return result

    departments = data.get("departments")
    users = data.get("users")

    if departments is not None:
        if not isinstance(departments, list):
            result.general_errors.append("departments must be an array")
        else:
            for index, department in enumerate(departments):
                errors = validate_department(department)
                if errors:
                    record = _as_mapping(department) or {}
                    result.department_errors.append(
                        RecordErrors(
                            index=index,
                            external_id=record.get("externalId") or "unknown",
                            errors=errors,
                        )
                    )

    if users is not None:
        if not isinstance(users, list):
            result.general_errors.append("users must be an array")
        else:
            for index, user in enumerate(users):
                errors = validate_user(user)
                if errors:
                    record = _as_mapping(user) or {}
                    result.user_errors.append(
                        RecordErrors(
                            index=index,
                            external_id=record.get("externalId") or "unknown",
                            email=record.get("email") or "unknown",
                            errors=errors,
                        )
                    )

    if not departments and not users:
        result.general_errors.append("Must provide either departments or users data")

    logger.debug(
        "Validated sync data",
        valid=result.valid,
        department_errors=len(result.department_errors),
        user_errors=len(result.user_errors),
    )
    return result


@dataclass
class HierarchyValidationResult:
    """Cycle errors and missing-parent warnings for a department batch."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_department_hierarchy(departments: Any) -> HierarchyValidationResult:
    """
    Check a department batch for circular parent chains and missing parents.

    Cycles are errors (the server cannot create them); missing parents are
    warnings because the parent may already exist server-side.

    Args:
        departments: List of department mappings or models

    Returns:
        HierarchyValidationResult
    """
    result = HierarchyValidationResult()

    if not isinstance(departments, list):
        result.errors.append("departments must be an array")
        return result

    graph = HierarchyGraph.from_items(departments)

    result.cycles = graph.find_cycles()
    for cycle in result.cycles:
        result.errors.append(f"Circular dependency detected: {' -> '.join(cycle)}")

    for child_id, parent_id in graph.dangling_parents().items():
        result.warnings.append(
            f'Department "{child_id}" references non-existent parent "{parent_id}"'
        )

    if result.errors:
        logger.warning("Department hierarchy has cycles", cycles=len(result.cycles))
    return result


def validate_auth_config(config: Any) -> list[str]:
    """
    Validate connection settings.

    Args:
        config: DirectoryConfig (or any object/mapping with base_url,
            tenant_id and api_token)

    Returns:
        List of error messages (empty when valid)
    """
    if isinstance(config, Mapping):
        base_url = config.get("base_url")
        tenant_id = config.get("tenant_id")
        api_token = config.get("api_token")
    else:
        base_url = getattr(config, "base_url", None)
        tenant_id = getattr(config, "tenant_id", None)
        api_token = getattr(config, "api_token", None)

    errors: list[str] = []
    if not base_url:
        errors.append("Missing required config: base_url")
    elif not is_valid_url(base_url):
        errors.append("Invalid base_url format")

    if not tenant_id:
        errors.append("Missing required config: tenant_id")

    if not api_token:
        errors.append("Missing required config: api_token")

    return errors


def validate_pagination(page: Any = None, page_size: Any = None) -> list[str]:
    """
    Validate pagination parameters.

    Args:
        page: Zero-based page index (optional)
        page_size: Items per page (optional)

    Returns:
        List of error messages (empty when valid)
    """
    errors: list[str] = []

    if page is not None:
        if isinstance(page, bool) or not isinstance(page, int) or page < 0:
            errors.append("page must be a non-negative integer")

    if page_size is not None:
        if (
            isinstance(page_size, bool)
            or not isinstance(page_size, int)
            or page_size < 1
            or page_size > MAX_PAGE_SIZE
        ):
            errors.append(f"pageSize must be an integer between 1 and {MAX_PAGE_SIZE}")

    return errors


def clean_user_data(user: Mapping[str, Any]) -> dict[str, Any]:
    """
    Return a normalised copy of a user mapping.

    Names and ids are trimmed, the e-mail is trimmed and lower-cased, and
    whitespace is removed from the phone number.
    """
    cleaned = dict(user)

    for key in ("firstName", "middleName", "lastName", "externalId"):
        if isinstance(cleaned.get(key), str):
            cleaned[key] = cleaned[key].strip()

    if isinstance(cleaned.get("email"), str):
        cleaned["email"] = cleaned["email"].strip().lower()

    if isinstance(cleaned.get("phoneNumber"), str):
        cleaned["phoneNumber"] = re.sub(r"\s+", "", cleaned["phoneNumber"])

    return cleaned


def clean_department_data(department: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a department mapping with id, name and parent trimmed."""
    cleaned = dict(department)

    for key in ("externalId", "departmentName", "parentExternalId"):
        if isinstance(cleaned.get(key), str):
            cleaned[key] = cleaned[key].strip()

    return cleaned
