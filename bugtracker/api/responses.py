"""Uniform response envelope and auth cookie handling."""

from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Response
from fastapi.responses import JSONResponse

from bugtracker.core.config import Settings

ACCESS_COOKIE = "token"
REFRESH_COOKIE = "refreshToken"


def iso_timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def envelope(
    message: str,
    data: Any = None,
    *,
    success: bool = True,
    errors: list[dict[str, Any]] | None = None,
    meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build {success, message, data?, meta?, errors?, timestamp}; absent parts are omitted."""
    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    if errors:
        body["errors"] = errors
    body["timestamp"] = iso_timestamp()
    return body


def error_response(
    status_code: int,
    message: str,
    errors: list[dict[str, Any]] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(message, success=False, errors=errors),
        headers=headers,
    )


def _cookie_options(settings: Settings) -> dict[str, Any]:
    prod = settings.APP_ENV == "prod"
    return {
        "httponly": True,
        "secure": prod,
        "samesite": "strict" if prod else "lax",
        "path": "/",
    }


def _seconds(lifetime: timedelta) -> int:
    return int(lifetime.total_seconds())


def set_auth_cookies(
    response: Response,
    settings: Settings,
    access_token: str,
    refresh_token: str,
) -> None:
    options = _cookie_options(settings)
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=_seconds(settings.access_token_lifetime),
        **options,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=_seconds(settings.refresh_token_lifetime),
        **options,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    """Expire both auth cookies immediately."""
    options = _cookie_options(settings)
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, **options)
