"""Engine and session lifecycle for the SQLAlchemy store."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from venuecal.config.storage import get_database_config

from .migrations import upgrade_head

if TYPE_CHECKING:
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Engine
    from sqlalchemy.pool import ConnectionPoolEntry

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the store is used before ``startup`` or started twice."""


@dataclass(frozen=True, slots=True)
class _Database:
    engine: Engine
    sessions: sessionmaker[Session]


@dataclass(slots=True)
class _Slot:
    database: _Database | None = None


_SLOT = _Slot()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Open the calendar database, migrate it to head and prepare sessions."""

    if _SLOT.database is not None and not force:
        raise StartupError(
            "The calendar database is already open; pass force=True to switch databases."
        )

    resolved = engine or _open_engine(database_uri or get_database_config().uri)
    log.info("Migrating schema on %s", resolved.url.render_as_string(hide_password=True))
    upgrade_head(engine=resolved)
    _SLOT.database = _Database(
        engine=resolved,
        sessions=sessionmaker(bind=resolved, expire_on_commit=False),
    )
    return resolved


def _open_engine(uri: str) -> Engine:
    engine = create_engine(uri)
    # SQLite leaves foreign keys off per connection; events cascade with their venue.
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(
    dbapi_connection: SQLiteConnection,
    _record: ConnectionPoolEntry,
) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def configured_engine() -> Engine | None:
    return _SLOT.database.engine if _SLOT.database is not None else None


def is_started() -> bool:
    return _SLOT.database is not None


def session_factory() -> sessionmaker[Session]:
    if _SLOT.database is None:
        raise StartupError(
            "The calendar database is not open. Call "
            "venuecal.adapters.sqlalchemy.startup() before creating a store."
        )
    return _SLOT.database.sessions


def shutdown() -> None:
    """Dispose the engine and forget the open database."""

    if _SLOT.database is not None:
        _SLOT.database.engine.dispose()
    _SLOT.database = None
