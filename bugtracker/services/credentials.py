"""
Credential store: lookups and mutations of the users table used by the
session lifecycle.

Every mutation is a single UPDATE statement evaluated by the database against
the row's current values, so concurrent requests for the same user cannot
lose updates (no read-modify-write in Python). Each function commits.
"""

from datetime import datetime, timedelta

from sqlalchemy import and_, case, update
from sqlalchemy.orm import Session

from bugtracker.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def email_exists(db: Session, email: str, exclude_id: int | None = None) -> bool:
    query = db.query(User.id).filter(User.email == normalize_email(email))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def record_failed_login(
    db: Session,
    user_id: int,
    now: datetime,
    max_attempts: int,
    lock_duration: timedelta,
) -> None:
    """
    Count one failed password attempt.

    - lock expired (lock_until <= now): restart the count at 1 and clear the lock
    - lock still active: leave counter and lock untouched
    - otherwise: increment; when the new count reaches max_attempts, lock until now + lock_duration
    """
    lock_expired = and_(User.lock_until.is_not(None), User.lock_until <= now)
    lock_active = and_(User.lock_until.is_not(None), User.lock_until > now)
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            login_attempts=case(
                (lock_expired, 1),
                (lock_active, User.login_attempts),
                else_=User.login_attempts + 1,
            ),
            lock_until=case(
                (lock_expired, None),
                (lock_active, User.lock_until),
                (User.login_attempts + 1 >= max_attempts, now + lock_duration),
                else_=User.lock_until,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()


def record_successful_login(
    db: Session,
    user_id: int,
    now: datetime,
    refresh_token: str,
) -> None:
    """Reset lockout state, stamp last_login and bind the new refresh token (replacing any prior one)."""
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            login_attempts=0,
            lock_until=None,
            last_login=now,
            refresh_token=refresh_token,
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()


def rotate_refresh_token(db: Session, user_id: int, presented: str, replacement: str) -> bool:
    """
    Swap the stored refresh token only if it still equals `presented`.
    Returns False when another request rotated or revoked it first.
    """
    stmt = (
        update(User)
        .where(User.id == user_id, User.refresh_token == presented)
        .values(refresh_token=replacement)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount == 1


def clear_refresh_token(db: Session, user_id: int) -> None:
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(refresh_token=None)
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()


def replace_password(db: Session, user_id: int, password_hash: str, changed_at: datetime) -> None:
    """Store a new password hash, stamp password_changed_at and revoke the refresh token."""
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(
            password_hash=password_hash,
            password_changed_at=changed_at,
            refresh_token=None,
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    db.commit()


def update_fields(db: Session, user_id: int, values: dict) -> int:
    """Apply a partial update in one statement; returns the number of rows matched."""
    if not values:
        return 1 if get_user_by_id(db, user_id) is not None else 0
    stmt = (
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount
