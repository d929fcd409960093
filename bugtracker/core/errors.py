"""Application error taxonomy. Each error carries an HTTP status and a user-safe message."""

from typing import Any


class AppError(Exception):
    """Base for errors rendered to clients as the standard failure envelope."""

    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class BadRequest(AppError):
    status_code = 400
    default_message = "Bad request"


class ValidationFailed(BadRequest):
    """Malformed input; `errors` holds [{field, message}] entries."""

    default_message = "Validation failed"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Not authorized. Please log in again."


class AuthenticationRequired(Unauthorized):
    default_message = "Authentication required. Please log in."


class InvalidCredentials(Unauthorized):
    """Same message whether the email is unknown or the password is wrong."""

    default_message = "Invalid email or password"


class IncorrectPassword(InvalidCredentials):
    """Wrong current password on change-password; 400 so clients keep the session."""

    status_code = 400
    default_message = "Current password is incorrect"


class TokenExpired(Unauthorized):
    default_message = "Token expired. Please log in again."


class InvalidToken(Unauthorized):
    default_message = "Invalid token. Please log in again."


class Forbidden(AppError):
    status_code = 403
    default_message = "Access denied."


class AccountLocked(Forbidden):
    default_message = "Account temporarily locked due to too many failed login attempts."


class AccountDeactivated(Forbidden):
    default_message = "Account deactivated. Contact support."


class NotFound(AppError):
    status_code = 404
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists"


class AuthServiceError(AppError):
    """Credential store unavailable during authentication; fails closed."""

    status_code = 500
    default_message = "Authentication error."
