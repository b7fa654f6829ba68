"""Directory payload models (departments and users) with Pydantic v2.

The Directory API speaks camelCase JSON. Models use snake_case attributes with
camelCase aliases so they can be built from either form and serialised back
to the wire format with ``to_payload()``.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _strip(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    return v


class DirectoryModel(BaseModel):
    """Base model: camelCase aliases, unknown fields preserved for forward compatibility."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the camelCase JSON body expected by the Directory API."""
        return self.model_dump(by_alias=True, exclude_none=True)


class UserType(DirectoryModel):
    """Membership of a user in a department with a given role."""

    department_external_id: str = Field(..., min_length=1)
    user_type_id: str = Field(..., min_length=1)

    @field_validator("department_external_id", "user_type_id", mode="before")
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """User type ids are often written as numbers in source data."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return _strip(v)


class Department(DirectoryModel):
    """
    Department (organisational unit) record.

    Attributes:
        external_id: Caller-side unique identifier
        department_name: Display name
        active: Whether the department is active
        parent_external_id: external_id of the parent department (None for roots)
        cascade_to_children: Propagate an active-state change to descendants
    """

    external_id: str = Field(..., min_length=1)
    department_name: str = Field(..., min_length=1)
    active: bool = True
    parent_external_id: str | None = None
    cascade_to_children: bool | None = None

    @field_validator("external_id", "department_name", "parent_external_id", mode="before")
    @classmethod
    def strip_strings(cls, v: Any) -> Any:
        v = _strip(v)
        if v == "":
            return None
        return v

    def to_payload(self) -> dict[str, Any]:
        """Roots are sent with an explicit ``parentExternalId: null``."""
        payload = super().to_payload()
        payload.setdefault("parentExternalId", None)
        return payload


class User(DirectoryModel):
    """
    User record with one or more department memberships.

    Attributes:
        external_id: Caller-side unique identifier
        email: Primary e-mail address (lower-cased)
        first_name: Given name
        last_name: Family name
        middle_name: Optional middle name
        phone_number: Optional phone number
        active: Whether the account is active
        user_types: Department memberships (at least one)
    """

    external_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    middle_name: str | None = None
    phone_number: str | None = None
    active: bool = True
    user_types: list[UserType] = Field(..., min_length=1)

    @field_validator("external_id", "first_name", "last_name", "middle_name", mode="before")
    @classmethod
    def strip_strings(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def department_ids(self) -> list[str]:
        """Departments this user belongs to, in membership order."""
        return [user_type.department_external_id for user_type in self.user_types]


class SyncData(DirectoryModel):
    """A complete synchronisation batch."""

    departments: list[Department] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.departments and not self.users

    def to_payload(self) -> dict[str, Any]:
        return {
            "departments": [department.to_payload() for department in self.departments],
            "users": [user.to_payload() for user in self.users],
        }
