"""
Session lifecycle: register, login, refresh, logout, change password, profile.

Raises bugtracker.core.errors types only; store and crypto exceptions are
mapped before they reach the API layer.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bugtracker.core.errors import (
    AccountDeactivated,
    AccountLocked,
    Conflict,
    IncorrectPassword,
    InvalidCredentials,
    InvalidToken,
    Unauthorized,
    ValidationFailed,
)
from bugtracker.core.security import (
    Clock,
    PasswordHasher,
    TokenError,
    TokenService,
    as_utc,
    utcnow,
)
from bugtracker.models import User
from bugtracker.models.user import DEFAULT_ROLE, SELF_REGISTER_ROLES
from bugtracker.services import credentials

logger = logging.getLogger(__name__)

LOCKOUT_MAX_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(hours=2)
# User-editable profile columns.
PROFILE_FIELDS = ("name", "department", "avatar")


@dataclass(frozen=True)
class LockoutPolicy:
    max_attempts: int = LOCKOUT_MAX_ATTEMPTS
    duration: timedelta = LOCKOUT_DURATION


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of register/login: the user plus a freshly issued token pair."""

    user: User
    tokens: TokenPair


def format_retry_window(remaining: timedelta) -> str:
    """Human readable wait, rounded up: "2 hours", "1 hour", "15 minutes"."""
    seconds = max(remaining.total_seconds(), 0)
    if seconds >= 3600:
        hours = math.ceil(seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = max(math.ceil(seconds / 60), 1)
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


class SessionService:
    """Orchestrates credential checks, lockout and token issuance for one request."""

    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        tokens: TokenService,
        policy: LockoutPolicy | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.db = db
        self.hasher = hasher
        self.tokens = tokens
        self.policy = policy or LockoutPolicy()
        self.clock = clock

    def _issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.tokens.issue_access(user.id, user.role),
            refresh_token=self.tokens.issue_refresh(user.id),
        )

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: str | None = None,
        department: str | None = None,
    ) -> AuthResult:
        """Create a self-service account; elevated roles are never granted here."""
        email = credentials.normalize_email(email)
        if credentials.email_exists(self.db, email):
            raise Conflict("User with this email already exists")

        if role not in SELF_REGISTER_ROLES:
            if role is not None:
                logger.warning("Registration requested role %r; coerced to %r", role, DEFAULT_ROLE)
            role = DEFAULT_ROLE

        user = User(
            name=name.strip(),
            email=email,
            role=role,
            department=department,
        )
        user.set_password(password, self.hasher)
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            raise Conflict("User with this email already exists") from e

        tokens = self._issue_pair(user)
        user.refresh_token = tokens.refresh_token
        self.db.commit()
        logger.info("User registered: user_id=%s role=%s", user.id, user.role)
        return AuthResult(user=user, tokens=tokens)

    def login(self, email: str, password: str) -> AuthResult:
        now = self.clock()
        user = credentials.get_user_by_email(self.db, email)
        if user is None:
            raise InvalidCredentials()

        if user.is_locked_at(now):
            wait = format_retry_window(as_utc(user.lock_until) - now)
            raise AccountLocked(
                f"Account locked due to too many failed attempts. Try again in {wait}."
            )

        if not user.is_active:
            raise AccountDeactivated()

        if not self.hasher.verify(password, user.password_hash):
            credentials.record_failed_login(
                self.db,
                user.id,
                now,
                self.policy.max_attempts,
                self.policy.duration,
            )
            if user.is_locked_at(now):
                logger.warning(
                    "Account locked after %s failed attempts: user_id=%s",
                    user.login_attempts,
                    user.id,
                )
            else:
                logger.warning(
                    "Failed login: user_id=%s attempts=%s", user.id, user.login_attempts
                )
            raise InvalidCredentials()

        tokens = self._issue_pair(user)
        credentials.record_successful_login(self.db, user.id, now, tokens.refresh_token)
        logger.info("Login successful: user_id=%s", user.id)
        return AuthResult(user=user, tokens=tokens)

    def refresh(self, presented: str | None) -> AuthResult:
        """Exchange a refresh token for a new pair; the presented token is revoked."""
        if not presented:
            raise Unauthorized("Refresh token required")

        try:
            payload = self.tokens.verify_refresh(presented)
            user_id = int(payload.subject)
        except (TokenError, ValueError):
            raise InvalidToken("Invalid or expired refresh token")

        user = credentials.get_user_by_id(self.db, user_id)
        if user is None or user.refresh_token != presented:
            logger.warning("Revoked or unknown refresh token presented: user_id=%s", user_id)
            raise Unauthorized("Refresh token invalid or revoked")

        tokens = self._issue_pair(user)
        if not credentials.rotate_refresh_token(
            self.db, user.id, presented, tokens.refresh_token
        ):
            logger.warning("Refresh token rotated concurrently: user_id=%s", user_id)
            raise Unauthorized("Refresh token invalid or revoked")
        logger.info("Refresh token rotated: user_id=%s", user.id)
        return AuthResult(user=user, tokens=tokens)

    def logout(self, user: User) -> None:
        """Revoke the stored refresh token. Safe to call repeatedly."""
        credentials.clear_refresh_token(self.db, user.id)
        logger.info("Logout: user_id=%s", user.id)

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        """Replace the password and revoke every session, including the caller's."""
        if not self.hasher.verify(current_password, user.password_hash):
            raise IncorrectPassword()
        changed_at: datetime = self.clock()
        credentials.replace_password(
            self.db,
            user.id,
            self.hasher.hash(new_password),
            changed_at,
        )
        logger.info("Password changed; sessions revoked: user_id=%s", user.id)

    def update_profile(self, user: User, changes: Mapping[str, Any]) -> User:
        """Apply the supplied profile fields; a None value clears department or avatar."""
        values = {key: changes[key] for key in PROFILE_FIELDS if key in changes}
        if values.get("name", "") is None:
            raise ValidationFailed(errors=[{"field": "name", "message": "Name cannot be empty"}])
        credentials.update_fields(self.db, user.id, values)
        self.db.refresh(user)
        return user
