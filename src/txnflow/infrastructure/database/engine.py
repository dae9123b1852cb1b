"""Database engine setup for SQLite with WAL mode.

SQLAlchemy Core (not ORM) is used: the engine performs a handful of
narrow reads and one append-only write batch per call, so there is no
benefit from session management or identity maps.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from txnflow.infrastructure.database.schema import metadata


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled.

    SQL echo is configured on the ``sqlalchemy.engine`` logger by
    :func:`txnflow.config.logging.configure_logging`, not here.
    """
    engine = create_engine(f"sqlite:///{db_path}")

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(db_path: Path) -> Engine:
    """Initialize the txnflow database at *db_path*.

    Creates the parent directory and all tables from :data:`schema.metadata`.
    Safe to call on an existing database.

    Returns the engine ready for use.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    metadata.create_all(engine)
    return engine
