"""Alembic environment for the giveaway schema.

The database URL comes from ``config.attributes["database_url"]`` when the
migration is started through :func:`bucketdraw.db.migrations.upgrade_db`,
otherwise from ``DB_URL`` (``.env`` is loaded first).
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv

from bucketdraw.db.engine import DEFAULT_SQLITE_URL, ROOT_DIR, make_engine
from bucketdraw.db.utils import resolve_sqlite_url
from bucketdraw.models import Base  # noqa: F401 - import populates metadata

load_dotenv(ROOT_DIR / ".env")

config = context.config

# Programmatic upgrades run inside the CLI, which already configured logging.
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    url = config.attributes.get("database_url") or os.getenv("DB_URL")
    if url:
        return resolve_sqlite_url(url, ROOT_DIR)
    return DEFAULT_SQLITE_URL


def run_migrations_offline() -> None:
    """Emit the giveaway DDL as SQL script output."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply revisions against a live connection.

    SQLite cannot alter constraints in place, so batch mode is used there.
    """
    engine = make_engine(database_url=_database_url())
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
