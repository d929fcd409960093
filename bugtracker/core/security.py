"""Password hashing and JWT creation/verification for authentication."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import bcrypt
import jwt

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of input.
BCRYPT_MAX_BYTES = 72

TokenKind = Literal["access", "refresh"]
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from stores without tz support (SQLite)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class PasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        self.rounds = rounds

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain_password: str, hashed: str) -> bool:
        """Verify a plain password against a stored hash; a mismatch is False, never an error."""
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenExpiredError(TokenError):
    """Signature is valid but the token is past its exp."""


class TokenInvalidError(TokenError):
    """Malformed token, bad signature, wrong token type or missing claims."""


@dataclass(frozen=True)
class TokenPayload:
    """Verified claims of an access or refresh token."""

    subject: str
    kind: TokenKind
    issued_at: float
    expires_at: float
    token_id: str
    role: str | None = None


class TokenService:
    """
    Issues and verifies the two signed token types.

    Access and refresh tokens are signed with distinct secrets and carry a
    "type" claim, so one can never be accepted in place of the other. Every
    token carries a random jti: two tokens issued to the same user within the
    same second are still different strings.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_lifetime: timedelta,
        refresh_lifetime: timedelta,
        algorithm: str = "HS256",
        clock: Clock = utcnow,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ValueError("Token secrets must be non-empty")
        self._secrets: dict[TokenKind, str] = {
            "access": access_secret,
            "refresh": refresh_secret,
        }
        self._lifetimes: dict[TokenKind, timedelta] = {
            "access": access_lifetime,
            "refresh": refresh_lifetime,
        }
        self.algorithm = algorithm
        self._clock = clock

    @property
    def access_lifetime(self) -> timedelta:
        return self._lifetimes["access"]

    @property
    def refresh_lifetime(self) -> timedelta:
        return self._lifetimes["refresh"]

    def _issue(self, kind: TokenKind, sub: str | int, extra: dict[str, Any]) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(sub),
            "type": kind,
            # Numeric claims keep sub-second precision; datetimes would be truncated.
            "iat": now.timestamp(),
            "exp": (now + self._lifetimes[kind]).timestamp(),
            "jti": uuid.uuid4().hex,
            **extra,
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self.algorithm)

    def issue_access(self, sub: str | int, role: str) -> str:
        """Create an access token with sub, role, iat and exp."""
        return self._issue("access", sub, {"role": role})

    def issue_refresh(self, sub: str | int) -> str:
        """Create a refresh token with sub, iat and exp."""
        return self._issue("refresh", sub, {})

    def verify(self, token: str, kind: TokenKind) -> TokenPayload:
        """
        Decode and validate a token against the secret for `kind`.
        Raises TokenExpiredError when expired, TokenInvalidError for anything else.

        Expiry is checked against the service clock rather than wall time.
        """
        try:
            claims = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self.algorithm],
                options={
                    "require": ["sub", "iat", "exp"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
            issued_at = float(claims["iat"])
            expires_at = float(claims["exp"])
        except jwt.PyJWTError as e:
            raise TokenInvalidError("Invalid token") from e
        except (TypeError, ValueError) as e:
            raise TokenInvalidError("Invalid token payload") from e

        if claims.get("type") != kind:
            raise TokenInvalidError("Wrong token type")
        if kind == "access" and not claims.get("role"):
            raise TokenInvalidError("Invalid token payload")
        if expires_at <= self._clock().timestamp():
            raise TokenExpiredError("Token expired")
        return TokenPayload(
            subject=str(claims["sub"]),
            kind=kind,
            issued_at=issued_at,
            expires_at=expires_at,
            token_id=str(claims.get("jti", "")),
            role=claims.get("role"),
        )

    def verify_access(self, token: str) -> TokenPayload:
        return self.verify(token, "access")

    def verify_refresh(self, token: str) -> TokenPayload:
        return self.verify(token, "refresh")
