"""SQLAlchemy adapter package for venuecal."""

from __future__ import annotations

from .mappings import create_all_tables, metadata
from .store import SqlAlchemyEventStore
from .unit_of_work import StartupError, is_started, session_factory, shutdown, startup

__all__ = [
    "SqlAlchemyEventStore",
    "StartupError",
    "create_all_tables",
    "is_started",
    "metadata",
    "session_factory",
    "shutdown",
    "startup",
]
