"""Apply the Alembic revisions shipped in the repository's ``alembic/`` folder."""

from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from .engine import ROOT_DIR, make_engine

ALEMBIC_INI = ROOT_DIR / "alembic.ini"
SCRIPT_LOCATION = ROOT_DIR / "alembic"


def alembic_config(database_url: Optional[str] = None) -> Config:
    """Build an Alembic config for ``database_url`` (else ``DB_URL``).

    ``alembic/env.py`` reads the URL from ``config.attributes`` and leaves the
    caller's logging setup alone when invoked this way.
    """
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    cfg.attributes["configure_logger"] = False
    if database_url:
        cfg.attributes["database_url"] = database_url
    return cfg


def upgrade_db(database_url: Optional[str] = None, revision: str = "head") -> None:
    """Upgrade the giveaway schema to ``revision``."""
    command.upgrade(alembic_config(database_url), revision)


def current_revision(database_url: Optional[str] = None) -> Optional[str]:
    """Return the revision stamped in ``alembic_version``, ``None`` if unmigrated."""
    engine = make_engine(database_url)
    try:
        with engine.connect() as conn:
            if not inspect(conn).has_table("alembic_version"):
                return None
            return conn.exec_driver_sql("SELECT version_num FROM alembic_version").scalar()
    finally:
        engine.dispose()
