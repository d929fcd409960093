"""Request/response schemas for auth endpoints. Field names are camelCase on the wire."""

import re
from datetime import datetime
from typing import Literal

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from bugtracker.core.security import as_utc

NAME_MIN_LEN = 2
NAME_MAX_LEN = 50
DEPARTMENT_MAX_LEN = 100
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# At least one lowercase, one uppercase and one digit.
_PASSWORD_STRENGTH_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")

SelfRegisterRole = Literal["user", "developer", "tester"]
Role = Literal["admin", "user", "developer", "tester"]


def validate_password_strength(value: str) -> str:
    if not _PASSWORD_STRENGTH_RE.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


def strip_text(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also accepted)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    """Public self-registration. Role is limited to non-elevated roles."""

    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    role: SelfRegisterRole | None = None
    department: str | None = Field(default=None, max_length=DEPARTMENT_MAX_LEN)

    @field_validator("name", "department", mode="before")
    @classmethod
    def strip_fields(cls, v: object) -> object:
        return strip_text(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class LoginRequest(CamelModel):
    """Credentials for login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class RefreshRequest(CamelModel):
    """Refresh token may come in the body or in the refreshToken cookie."""

    refresh_token: str | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UpdateProfileRequest(CamelModel):
    """
    Only these profile fields are user-editable. Omitted fields stay unchanged;
    an explicit null clears department or avatar.
    """

    name: str | None = Field(default=None, min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    department: str | None = Field(default=None, max_length=DEPARTMENT_MAX_LEN)
    avatar: str | None = Field(default=None, max_length=1024)

    @field_validator("name", "department", mode="before")
    @classmethod
    def strip_fields(cls, v: object) -> object:
        return strip_text(v)

    @field_validator("name")
    @classmethod
    def name_not_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("Name cannot be empty")
        return v

    def changes(self) -> dict:
        """Fields the caller actually sent, keyed by column name."""
        return self.model_dump(exclude_unset=True)


class UserOut(BaseModel):
    """Redacted user: never carries the password hash, refresh token or lockout counters."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    id: int = Field(serialization_alias="_id")
    name: str
    email: str
    role: str
    avatar: str | None = None
    department: str | None = None
    is_active: bool
    is_email_verified: bool
    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("last_login", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


def user_to_dict(user: object) -> dict:
    """Serialize an ORM user into its redacted wire shape."""
    return UserOut.model_validate(user).model_dump(mode="json", by_alias=True)

