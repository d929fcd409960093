"""Pydantic request/response schemas."""

from bugtracker.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserOut,
    user_to_dict,
)
from bugtracker.schemas.health import HealthResponse
from bugtracker.schemas.users import AdminCreateUserRequest, AdminUpdateUserRequest

__all__ = [
    "AdminCreateUserRequest",
    "AdminUpdateUserRequest",
    "ChangePasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "RefreshRequest",
    "RegisterRequest",
    "UpdateProfileRequest",
    "UserOut",
    "user_to_dict",
]
