"""ORM model for user accounts: credentials, role, lockout and session binding."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from bugtracker.core.security import PasswordHasher, as_utc, utcnow
from bugtracker.models.base import Base

USER_ROLES = ("admin", "user", "developer", "tester")
# Roles a caller may pick for themselves at public registration.
SELF_REGISTER_ROLES = ("user", "developer", "tester")
DEFAULT_ROLE = "user"


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    refresh_token holds the single currently valid refresh token; storing a
    new one revokes the previous one. lock_until in the past means unlocked.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=DEFAULT_ROLE, index=True)
    avatar = Column(String(1024), nullable=True)
    department = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    is_email_verified = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime(timezone=True), nullable=True)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    refresh_token = Column(Text, nullable=True)
    login_attempts = Column(Integer, nullable=False, default=0, server_default="0")
    lock_until = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def is_locked_at(self, now: datetime) -> bool:
        return self.lock_until is not None and as_utc(self.lock_until) > now

    def set_password(
        self,
        plain_password: str,
        hasher: PasswordHasher,
        now: datetime | None = None,
    ) -> None:
        """
        Hash and store a new password. On an already persisted user this also
        stamps password_changed_at with the exact moment of the change, which
        invalidates every token issued before it.
        """
        self.password_hash = hasher.hash(plain_password)
        if self.id is not None:
            self.password_changed_at = now or utcnow()

    def password_changed_after(self, issued_at: float) -> bool:
        """True when a token issued at `issued_at` (epoch seconds) predates the last password change."""
        if self.password_changed_at is None:
            return False
        return issued_at < as_utc(self.password_changed_at).timestamp()

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
