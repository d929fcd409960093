"""Auth endpoints: register, login, refresh, logout, profile and password change."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response, status

from bugtracker.api.deps import CurrentUser, OptionalUser, get_session_service
from bugtracker.api.responses import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    envelope,
    set_auth_cookies,
)
from bugtracker.core.config import settings
from bugtracker.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    UpdateProfileRequest,
    user_to_dict,
)
from bugtracker.services.sessions import AuthResult, SessionService

router = APIRouter()

Sessions = Annotated[SessionService, Depends(get_session_service)]


def _token_payload(result: AuthResult) -> dict[str, Any]:
    return {
        "user": user_to_dict(result.user),
        "accessToken": result.tokens.access_token,
        "refreshToken": result.tokens.refresh_token,
        "expiresIn": settings.JWT_EXPIRE,
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, response: Response, sessions: Sessions) -> dict[str, Any]:
    """Create an account (non-elevated roles only) and start a session."""
    result = sessions.register(
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        department=body.department,
    )
    set_auth_cookies(response, settings, result.tokens.access_token, result.tokens.refresh_token)
    return envelope("Registration successful", _token_payload(result))


@router.post("/login")
def login(body: LoginRequest, response: Response, sessions: Sessions) -> dict[str, Any]:
    """
    Authenticate with email and password; returns an access and a refresh token.
    Send the access token as: Authorization: Bearer <accessToken>
    """
    result = sessions.login(body.email, body.password)
    set_auth_cookies(response, settings, result.tokens.access_token, result.tokens.refresh_token)
    return envelope("Login successful", _token_payload(result))


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    sessions: Sessions,
    body: RefreshRequest | None = None,
) -> dict[str, Any]:
    """Rotate the refresh token (body first, then cookie) and issue a new pair."""
    presented = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    result = sessions.refresh(presented)
    set_auth_cookies(response, settings, result.tokens.access_token, result.tokens.refresh_token)
    return envelope(
        "Token refreshed",
        {
            "accessToken": result.tokens.access_token,
            "refreshToken": result.tokens.refresh_token,
        },
    )


@router.post("/logout")
def logout(current_user: CurrentUser, response: Response, sessions: Sessions) -> dict[str, Any]:
    sessions.logout(current_user)
    clear_auth_cookies(response, settings)
    return envelope("Logged out successfully")


@router.get("/me")
def get_me(current_user: CurrentUser) -> dict[str, Any]:
    return envelope("Profile fetched", user_to_dict(current_user))


@router.put("/me")
def update_me(
    body: UpdateProfileRequest,
    current_user: CurrentUser,
    sessions: Sessions,
) -> dict[str, Any]:
    user = sessions.update_profile(current_user, body.changes())
    return envelope("Profile updated", user_to_dict(user))


@router.put("/change-password")
def change_password(
    body: ChangePasswordRequest,
    current_user: CurrentUser,
    response: Response,
    sessions: Sessions,
) -> dict[str, Any]:
    """Changing the password logs the user out everywhere, this session included."""
    sessions.change_password(current_user, body.current_password, body.new_password)
    clear_auth_cookies(response, settings)
    return envelope("Password changed successfully. Please log in again.")


@router.get("/session")
def get_session(current_user: OptionalUser) -> dict[str, Any]:
    """Report whether the caller is authenticated; never fails for anonymous callers."""
    if current_user is None:
        return envelope("Anonymous session", {"authenticated": False, "user": None})
    return envelope(
        "Authenticated session",
        {"authenticated": True, "user": user_to_dict(current_user)},
    )
