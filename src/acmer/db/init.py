"""Database initialisation from acmer configuration.

Usage::

    from acmer.config import get_config
    from acmer.db.init import init_database

    db = init_database(get_config().settings.database)
    ...
    close_database(db)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from psycopg.conninfo import conninfo_to_dict
from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from acmer.config.settings import DatabaseSettings

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

log = logging.getLogger(__name__)


def _connection_params(settings: DatabaseSettings) -> dict:
    """Return host/port/database/user/password/sslmode for *settings*.

    A ``connection_string`` is parsed with libpq rules; any field it
    leaves out falls back to the discrete settings.
    """
    params = {
        "host": settings.host,
        "port": settings.port,
        "database": settings.database,
        "user": settings.user,
        "password": settings.password,
        "sslmode": settings.sslmode,
    }
    if not settings.connection_string:
        return params

    parsed = conninfo_to_dict(settings.connection_string)
    if parsed.get("host"):
        params["host"] = parsed["host"]
    if parsed.get("port"):
        params["port"] = int(parsed["port"])
    if parsed.get("dbname"):
        params["database"] = parsed["dbname"]
    if parsed.get("user"):
        params["user"] = parsed["user"]
    if parsed.get("password"):
        params["password"] = parsed["password"]
    if parsed.get("sslmode"):
        params["sslmode"] = parsed["sslmode"]
    return params


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    """Map acmer DatabaseSettings to PyPGKit DatabaseConfig."""
    return DatabaseConfig(
        **_connection_params(settings),
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def init_database(settings: DatabaseSettings) -> Database:
    """Initialise the :class:`Database` singleton from config settings.

    If the singleton is already initialised, returns the existing instance.

    Parameters
    ----------
    settings:
        The ``database`` section from :class:`AcmerSettings`.

    Returns
    -------
    Database
        The ready-to-use database instance.

    """
    if Database.is_initialized():
        log.debug("Database already initialised, returning existing instance")
        return Database.get_instance()

    config = _settings_to_config(settings)
    params = _connection_params(settings)

    log.info(
        "Initialising record store connection: %s@%s:%s/%s",
        params["user"],
        params["host"],
        params["port"],
        params["database"],
    )

    db = Database.init(
        config=config,
        schema_path=_SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )

    log.info("Record store initialised successfully")
    return db


def close_database(db: Database) -> None:
    """Release the connection pool held by *db* at shutdown."""
    close = getattr(db, "close", None)
    if close is None:
        log.debug("Database handle has no close(); leaving pool to process exit")
        return
    close()
    log.info("Record store connection closed")
