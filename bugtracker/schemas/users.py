"""Request schemas for admin user management."""

from pydantic import EmailStr, Field, field_validator

from bugtracker.schemas.auth import (
    DEPARTMENT_MAX_LEN,
    NAME_MAX_LEN,
    NAME_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    CamelModel,
    Role,
    strip_text,
)


class AdminCreateUserRequest(CamelModel):
    """Admin provisioning: any role may be assigned."""

    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    role: Role = "user"
    department: str | None = Field(default=None, max_length=DEPARTMENT_MAX_LEN)

    @field_validator("name", "department", mode="before")
    @classmethod
    def strip_fields(cls, v: object) -> object:
        return strip_text(v)


class AdminUpdateUserRequest(CamelModel):
    name: str | None = Field(default=None, min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr | None = None
    role: Role | None = None
    department: str | None = Field(default=None, max_length=DEPARTMENT_MAX_LEN)
    is_active: bool | None = None

    @field_validator("name", "department", mode="before")
    @classmethod
    def strip_fields(cls, v: object) -> object:
        return strip_text(v)

    def changes(self) -> dict:
        """Fields the caller actually supplied, keyed by ORM column name."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}
