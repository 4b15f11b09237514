from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from ordering.core import config

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"
STARTUP_PREFIX = "[STARTUP]"

_PROD_ENVS = {"prod", "production"}
_UNCHECKED_ENVS = {"test", "dev", "development", "local"}


def _env(value: str | None) -> str:
    return (value or config.ENV_NORMALIZED).strip().lower()


def validate_database_environment(env: str | None = None, database_url: str | None = None) -> None:
    database_url = database_url or config.DATABASE_URL
    if _env(env) in _PROD_ENVS and database_url.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def warn_on_incomplete_settings(env: str | None = None) -> list[str]:
    """Log settings that leave a feature silently disabled; returns the warnings."""
    warnings = []
    if not config.PLATFORM_ADMIN_TOKEN:
        warnings.append("PLATFORM_ADMIN_TOKEN is empty; platform tenant routes answer 503")
    if config.RECEIPT_PROVIDER == "http" and not config.RECEIPT_API_URL:
        warnings.append("RECEIPT_PROVIDER=http without RECEIPT_API_URL; receipts go to the mock provider")
    if _env(env) in _PROD_ENVS and not config.PLATFORM_DOMAIN:
        warnings.append("PLATFORM_DOMAIN is empty; only custom domains resolve tenants")
    for message in warnings:
        logger.warning("%s %s", STARTUP_PREFIX, message)
    return warnings


def _expected_heads(alembic_config_path: Path) -> set[str]:
    script_directory = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(script_directory.get_heads())


def _current_heads(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        return set(MigrationContext.configure(connection).get_current_heads())


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path, env: str | None = None) -> None:
    env = _env(env)
    if env in _UNCHECKED_ENVS:
        logger.info("%s skipped migration check env=%s", MIGRATIONS_PREFIX, env)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    expected = _expected_heads(alembic_config_path)
    current = _current_heads(engine)
    if not current:
        logger.critical("%s database has no alembic revision", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no migration state")
    if current != expected:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current),
            sorted(expected),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified heads=%s", MIGRATIONS_PREFIX, sorted(current))
