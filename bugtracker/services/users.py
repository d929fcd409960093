"""Admin user management: list, fetch, create, update and deactivate accounts."""

import logging
from dataclasses import dataclass

from sqlalchemy import case, not_, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bugtracker.core.errors import BadRequest, Conflict, NotFound
from bugtracker.core.security import PasswordHasher
from bugtracker.models import User
from bugtracker.services import credentials

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "name": User.name,
    "email": User.email,
    "role": User.role,
    "lastLogin": User.last_login,
}


LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Substring pattern for LIKE with the wildcards in `term` matched literally."""
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


@dataclass(frozen=True)
class UserPage:
    items: list[User]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNextPage": self.page < self.total_pages,
            "hasPrevPage": self.page > 1,
        }


def list_users(
    db: Session,
    page: int = 1,
    limit: int = 10,
    role: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    sort_by: str = "createdAt",
    order: str = "desc",
) -> UserPage:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if search:
        pattern = like_pattern(search.strip())
        query = query.filter(
            or_(
                User.name.ilike(pattern, escape=LIKE_ESCAPE),
                User.email.ilike(pattern, escape=LIKE_ESCAPE),
                User.department.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )
    total = query.count()
    column = SORTABLE_FIELDS.get(sort_by, User.created_at)
    ordering = column.asc() if order == "asc" else column.desc()
    items = (
        query.order_by(ordering, User.id.asc() if order == "asc" else User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return UserPage(items=items, total=total, page=page, limit=limit)


def get_user(db: Session, user_id: int) -> User:
    user = credentials.get_user_by_id(db, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def create_user(
    db: Session,
    hasher: PasswordHasher,
    name: str,
    email: str,
    password: str,
    role: str,
    department: str | None = None,
) -> User:
    """Provision an account with any role (admin-only path)."""
    email = credentials.normalize_email(email)
    if credentials.email_exists(db, email):
        raise Conflict("User with this email already exists")
    user = User(name=name.strip(), email=email, role=role, department=department)
    user.set_password(password, hasher)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise Conflict("User with this email already exists") from e
    db.refresh(user)
    logger.info("User created by admin: user_id=%s role=%s", user.id, user.role)
    return user


def update_user(db: Session, actor: User, user_id: int, changes: dict) -> User:
    """
    Apply admin edits (name, email, role, department, is_active).
    Admins cannot demote themselves; deactivation revokes the refresh token.
    """
    target = get_user(db, user_id)
    role = changes.get("role")
    if target.id == actor.id and role is not None and role != "admin":
        raise BadRequest("Admins cannot change their own role")
    if "email" in changes:
        changes["email"] = credentials.normalize_email(changes["email"])
        if credentials.email_exists(db, changes["email"], exclude_id=target.id):
            raise Conflict("User with this email already exists")
    if changes.get("is_active") is False:
        changes["refresh_token"] = None
    try:
        credentials.update_fields(db, target.id, changes)
    except IntegrityError as e:
        db.rollback()
        raise Conflict("User with this email already exists") from e
    db.refresh(target)
    logger.info("User updated by admin: user_id=%s fields=%s", target.id, sorted(changes))
    return target


def deactivate_user(db: Session, actor: User, user_id: int) -> None:
    """Soft delete: accounts are deactivated, never removed."""
    if user_id == actor.id:
        raise BadRequest("Cannot delete your own account")
    target = get_user(db, user_id)
    credentials.update_fields(db, target.id, {"is_active": False, "refresh_token": None})
    logger.info("User deactivated: user_id=%s by=%s", target.id, actor.id)


def toggle_status(db: Session, actor: User, user_id: int) -> bool:
    """Flip is_active atomically; returns the new value."""
    target = get_user(db, user_id)
    if target.id == actor.id:
        raise BadRequest("Cannot modify your own status")
    stmt = (
        update(User)
        .where(User.id == target.id)
        .values(
            is_active=not_(User.is_active),
            # Becoming inactive revokes the refresh token.
            refresh_token=case((User.is_active, None), else_=User.refresh_token),
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()
    db.refresh(target)
    logger.info("User status toggled: user_id=%s is_active=%s", target.id, target.is_active)
    return bool(target.is_active)
