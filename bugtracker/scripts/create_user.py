"""
Create a user (e.g. the first admin). Run from project root:
  python -m bugtracker.scripts.create_user EMAIL PASSWORD NAME [role] [--department DEPT]
Example:
  python -m bugtracker.scripts.create_user admin@bugtracker.com 'Admin@1234' "System Admin" admin
"""
import argparse
import sys

from bugtracker.core.config import get_settings
from bugtracker.core.database import SessionLocal
from bugtracker.core.errors import Conflict
from bugtracker.core.security import PasswordHasher
from bugtracker.models.user import USER_ROLES
from bugtracker.schemas.auth import (
    NAME_MAX_LEN,
    NAME_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    validate_password_strength,
)
from bugtracker.services.users import create_user


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a bug tracker user with any role.")
    parser.add_argument("email", help="Email address (stored lowercased)")
    parser.add_argument("password", help="Password (8-128 chars, upper, lower and digit)")
    parser.add_argument("name", help="Display name (2-50 chars)")
    parser.add_argument("role", nargs="?", default="user", choices=USER_ROLES)
    parser.add_argument("--department", default=None)
    args = parser.parse_args(argv)

    name = args.name.strip()
    if not (NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN):
        print(f"Name must be {NAME_MIN_LEN}-{NAME_MAX_LEN} characters.", file=sys.stderr)
        return 1
    if "@" not in args.email:
        print("Invalid email address.", file=sys.stderr)
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1
    try:
        validate_password_strength(args.password)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        user = create_user(
            db,
            PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS),
            name=name,
            email=args.email,
            password=args.password,
            role=args.role,
            department=args.department,
        )
    except Conflict:
        print(f"User '{args.email}' already exists.", file=sys.stderr)
        return 1
    finally:
        db.close()
    print(f"Created user '{user.email}' (id={user.id}) with role '{user.role}'.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
