"""SQLAlchemy table metadata for venue calendars."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    false,
    true,
)

from venuecal.domain.model import Artist, CanonicalEvent, Venue

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine, RowMapping

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

venue_table = Table(
    "venue",
    metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("website", String(2048), nullable=True),
    Column("events_path", String(2048), nullable=True),
    Column("timezone", String(64), nullable=True),
    Column("crawlable", Boolean, nullable=False, server_default=true()),
)

artist_table = Table(
    "artist",
    metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("approved", Boolean, nullable=False, server_default=false()),
)

event_table = Table(
    "event",
    metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("name", String(512), nullable=False),
    Column("start_at", UTCDateTime(), nullable=False),
    Column("end_at", UTCDateTime(), nullable=False),
    Column("venue_id", UUIDColumnType, ForeignKey("venue.id", ondelete="CASCADE"), nullable=False),
    Column("artist_id", UUIDColumnType, ForeignKey("artist.id"), nullable=False),
    Column("conflict", Boolean, nullable=False, server_default=false()),
    Column("cancelled", Boolean, nullable=False, server_default=false()),
    Column("approved", Boolean, nullable=False, server_default=false()),
    UniqueConstraint("venue_id", "start_at"),
    Index("ix_event_start_at", "start_at"),
)


def venue_from_row(row: RowMapping) -> Venue:
    return Venue(
        id=row["id"],
        name=row["name"],
        website=row["website"],
        events_path=row["events_path"],
        timezone=row["timezone"],
        crawlable=row["crawlable"],
    )


def artist_from_row(row: RowMapping) -> Artist:
    return Artist(id=row["id"], name=row["name"], approved=row["approved"])


def event_from_row(row: RowMapping) -> CanonicalEvent:
    """Build an event from a row of ``event`` joined with ``artist.name AS artist_name``."""

    return CanonicalEvent(
        id=row["id"],
        name=row["name"],
        start_at=row["start_at"],
        end_at=row["end_at"],
        venue_id=row["venue_id"],
        artist_id=row["artist_id"],
        artist_name=row.get("artist_name"),
        conflict=row["conflict"],
        cancelled=row["cancelled"],
        approved=row["approved"],
    )


def create_all_tables(engine: Engine) -> None:
    """Create tables without running migrations (tests and throwaway databases)."""

    metadata.create_all(engine)


__all__ = [
    "UTCDateTime",
    "artist_from_row",
    "artist_table",
    "create_all_tables",
    "event_from_row",
    "event_table",
    "metadata",
    "venue_from_row",
    "venue_table",
]
