"""Admin-only user management. Role elevation happens only here (and the CLI)."""

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bugtracker.api.deps import get_password_hasher, require_admin
from bugtracker.api.responses import envelope
from bugtracker.core.database import get_db
from bugtracker.core.security import PasswordHasher
from bugtracker.models import User
from bugtracker.schemas.auth import Role, user_to_dict
from bugtracker.schemas.users import AdminCreateUserRequest, AdminUpdateUserRequest
from bugtracker.services import users as user_service

router = APIRouter()

Admin = Annotated[User, Depends(require_admin)]
DB = Annotated[Session, Depends(get_db)]

MAX_PAGE_SIZE = 100


@router.get("")
def list_users(
    _admin: Admin,
    db: DB,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    role: Role | None = None,
    is_active: Annotated[bool | None, Query(alias="isActive")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    sort_by: Annotated[
        Literal["createdAt", "name", "email", "role", "lastLogin"], Query(alias="sortBy")
    ] = "createdAt",
    order: Literal["asc", "desc"] = "desc",
) -> dict[str, Any]:
    """List users with filters and pagination (admin only)."""
    result = user_service.list_users(
        db,
        page=page,
        limit=limit,
        role=role,
        is_active=is_active,
        search=search,
        sort_by=sort_by,
        order=order,
    )
    return envelope(
        "Users fetched",
        [user_to_dict(u) for u in result.items],
        meta={"pagination": result.pagination()},
    )


@router.get("/{user_id}")
def get_user(user_id: int, _admin: Admin, db: DB) -> dict[str, Any]:
    return envelope("User fetched", user_to_dict(user_service.get_user(db, user_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    body: AdminCreateUserRequest,
    _admin: Admin,
    db: DB,
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> dict[str, Any]:
    user = user_service.create_user(
        db,
        hasher,
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        department=body.department,
    )
    return envelope("User created", user_to_dict(user))


@router.put("/{user_id}")
def update_user(
    user_id: int,
    body: AdminUpdateUserRequest,
    admin: Admin,
    db: DB,
) -> dict[str, Any]:
    user = user_service.update_user(db, admin, user_id, body.changes())
    return envelope("User updated", user_to_dict(user))


@router.delete("/{user_id}")
def delete_user(user_id: int, admin: Admin, db: DB) -> dict[str, Any]:
    """Soft delete: the account is deactivated, not removed."""
    user_service.deactivate_user(db, admin, user_id)
    return envelope("User deactivated successfully")


@router.patch("/{user_id}/toggle-status")
def toggle_user_status(user_id: int, admin: Admin, db: DB) -> dict[str, Any]:
    is_active = user_service.toggle_status(db, admin, user_id)
    return envelope(
        f"User {'activated' if is_active else 'deactivated'}",
        {"isActive": is_active},
    )
