"""Alembic environment bound to Settings.DATABASE_URL and the ORM metadata."""

import os
from logging.config import fileConfig

from alembic import context

os.environ.setdefault("APP_ENV", "dev")
from bugtracker.core.config import settings
from bugtracker.core.database import build_engine
from bugtracker.models import Base, User  # noqa: F401  (registers the users table)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    # -x db_url=... overrides the configured URL (e.g. to migrate a scratch database).
    return context.get_x_argument(as_dictionary=True).get("db_url", settings.DATABASE_URL)


def _configure_kwargs(url: str) -> dict:
    # SQLite cannot ALTER most constraints in place; batch mode copies the table instead.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""
    url = get_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_url()
    connectable = build_engine(url)
    try:
        with connectable.connect() as connection:
            context.configure(connection=connection, **_configure_kwargs(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
