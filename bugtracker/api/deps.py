"""
Request gate dependencies: authentication (required and optional), role
checks and per-request service construction.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bugtracker.api.responses import ACCESS_COOKIE
from bugtracker.core.config import get_settings
from bugtracker.core.database import get_db
from bugtracker.core.errors import (
    AccountLocked,
    AppError,
    AuthenticationRequired,
    AuthServiceError,
    Forbidden,
    InvalidToken,
    TokenExpired,
    Unauthorized,
)
from bugtracker.core.security import (
    Clock,
    PasswordHasher,
    TokenExpiredError,
    TokenInvalidError,
    TokenService,
    utcnow,
)
from bugtracker.models import User
from bugtracker.services.sessions import LockoutPolicy, SessionService

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_clock() -> Clock:
    """Time source for token issuance and lock checks; overridden in tests."""
    return utcnow


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)


def get_token_service(clock: Annotated[Clock, Depends(get_clock)]) -> TokenService:
    settings = get_settings()
    return TokenService(
        access_secret=settings.JWT_SECRET.get_secret_value(),
        refresh_secret=settings.refresh_secret(),
        access_lifetime=settings.access_token_lifetime,
        refresh_lifetime=settings.refresh_token_lifetime,
        algorithm=settings.JWT_ALGORITHM,
        clock=clock,
    )


def get_session_service(
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> SessionService:
    settings = get_settings()
    policy = LockoutPolicy(
        max_attempts=settings.LOCKOUT_MAX_ATTEMPTS,
        duration=settings.lockout_duration,
    )
    return SessionService(db, hasher, tokens, policy=policy, clock=clock)


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    """Bearer token from the Authorization header, else the access-token cookie."""
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE) or None


def authenticate(
    token: str | None,
    db: Session,
    tokens: TokenService,
    clock: Clock,
) -> User:
    """Run every gate check for an access token and return the loaded user."""
    if not token:
        raise AuthenticationRequired()
    try:
        payload = tokens.verify_access(token)
    except TokenExpiredError:
        raise TokenExpired()
    except TokenInvalidError:
        raise InvalidToken()
    try:
        user_id = int(payload.subject)
    except ValueError:
        raise InvalidToken()

    try:
        user = db.get(User, user_id)
    except SQLAlchemyError:
        logger.exception("Credential store lookup failed during authentication")
        raise AuthServiceError()
    if user is None:
        raise Unauthorized("User no longer exists.")
    if not user.is_active:
        raise Unauthorized("Account has been deactivated. Contact support.")
    if user.is_locked_at(clock()):
        raise AccountLocked()
    if user.password_changed_after(payload.issued_at):
        raise Unauthorized("Password recently changed. Please log in again.")
    return user


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> User:
    """Dependency: require a valid access token; attaches the user to request.state."""
    user = authenticate(extract_token(request, credentials), db, tokens, clock)
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> User | None:
    """Dependency: same checks as get_current_user, but any failure means anonymous."""
    token = extract_token(request, credentials)
    if not token:
        return None
    try:
        user = authenticate(token, db, tokens, clock)
    except AppError as e:
        logger.debug("Optional auth proceeding anonymously: %s", e.message)
        return None
    request.state.user = user
    return user


def require_roles(*roles: str):
    """Dependency factory: authenticated user whose role is one of `roles`, else 403."""
    allowed = frozenset(roles)

    def dependency(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in allowed:
            raise Forbidden(
                f"Access denied. Required role: {' or '.join(roles)}. "
                f"Your role: {current_user.role}"
            )
        return current_user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
require_admin = require_roles("admin")
