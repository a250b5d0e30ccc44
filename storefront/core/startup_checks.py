from __future__ import annotations

import logging
import os
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from storefront.core.config import DATABASE_URL

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"

# Local databases are built with create_all, so their revision is never stamped
_UNCHECKED_ENVS = {"test", "dev", "development", "local"}


def _runtime_env() -> str:
    return os.getenv("ENVIRONMENT", os.getenv("ENV", "dev")).strip().lower()


def validate_database_environment() -> None:
    if _runtime_env() in {"prod", "production"} and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def expected_revisions(alembic_config_path: Path) -> set[str]:
    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")
    return set(ScriptDirectory.from_config(Config(str(alembic_config_path))).get_heads())


def applied_revisions(engine: Engine) -> set[str] | None:
    """Revisions stamped in ``alembic_version``, or None when the table is missing."""
    with engine.connect() as connection:
        if not inspect(connection).has_table("alembic_version"):
            return None
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row and row[0]}


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Refuse to start when the database is behind the Alembic head revision."""
    env = _runtime_env()
    if env in _UNCHECKED_ENVS:
        logger.info("%s skipped migration check env=%s", MIGRATIONS_PREFIX, env)
        return

    expected = expected_revisions(alembic_config_path)
    applied = applied_revisions(engine)
    if applied is None:
        logger.critical("%s alembic_version table missing", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no migration state")
    if applied != expected:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(applied),
            sorted(expected),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified revisions=%s", MIGRATIONS_PREFIX, sorted(applied))
