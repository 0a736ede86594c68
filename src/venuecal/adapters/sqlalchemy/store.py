"""SQLAlchemy implementation of the event store port.

Database work is synchronous and short; each call opens its own session and
transaction so a failed write never leaks into the next one.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import Select, insert, select, update
from sqlalchemy.exc import IntegrityError

from venuecal.domain.errors import DuplicateKeyError
from venuecal.domain.matching import matches_prefilter
from venuecal.domain.model import Artist, Venue, new_id

from .mappings import (
    artist_from_row,
    artist_table,
    event_from_row,
    event_table,
    venue_from_row,
    venue_table,
)
from .unit_of_work import session_factory as configured_session_factory

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.orm import Session, sessionmaker

    from venuecal.domain.model import CanonicalEvent, NormalizedEvent
    from venuecal.domain.time_windows import TimeWindow

log = getLogger(__name__)


def _events_with_artist() -> Select[tuple[object, ...]]:
    return select(*event_table.c, artist_table.c.name.label("artist_name")).join(
        artist_table, artist_table.c.id == event_table.c.artist_id
    )


class SqlAlchemyEventStore:
    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or configured_session_factory()

    # Venues -----------------------------------------------------------------

    async def list_crawlable_venues(self) -> list[Venue]:
        statement = (
            select(venue_table).where(venue_table.c.crawlable.is_(True)).order_by(venue_table.c.name)
        )
        with self._session_factory() as session:
            return [venue_from_row(row) for row in session.execute(statement).mappings()]

    async def find_venue_by_name(self, name: str) -> Venue | None:
        with self._session_factory() as session:
            row = session.execute(
                select(venue_table).where(venue_table.c.name == name)
            ).mappings().first()
        return venue_from_row(row) if row is not None else None

    async def add_venue(
        self,
        name: str,
        *,
        website: str | None = None,
        events_path: str | None = None,
        timezone: str | None = None,
        crawlable: bool = True,
    ) -> Venue:
        """Register a venue, or return the one already using ``name``."""

        venue = Venue(
            id=new_id(),
            name=name,
            website=website,
            events_path=events_path,
            timezone=timezone,
            crawlable=crawlable,
        )
        try:
            with self._session_factory() as session, session.begin():
                session.execute(
                    insert(venue_table).values(
                        id=venue.id,
                        name=venue.name,
                        website=venue.website,
                        events_path=venue.events_path,
                        timezone=venue.timezone,
                        crawlable=venue.crawlable,
                    )
                )
        except IntegrityError:
            existing = await self.find_venue_by_name(name)
            if existing is None:
                raise
            log.info("Venue %r already registered", name)
            return existing
        log.info("Registered venue %r", name)
        return venue

    # Artists ----------------------------------------------------------------

    async def find_artist_by_name(self, name: str) -> Artist | None:
        with self._session_factory() as session:
            row = session.execute(
                select(artist_table).where(artist_table.c.name == name)
            ).mappings().first()
        return artist_from_row(row) if row is not None else None

    async def create_artist(self, name: str, *, approved: bool = False) -> Artist:
        artist = Artist(id=new_id(), name=name, approved=approved)
        try:
            with self._session_factory() as session, session.begin():
                session.execute(
                    insert(artist_table).values(
                        id=artist.id, name=artist.name, approved=artist.approved
                    )
                )
        except IntegrityError:
            existing = await self.find_artist_by_name(name)
            if existing is None:
                raise
            return existing
        return artist

    async def ensure_artist(self, name: str, *, approved: bool = False) -> Artist:
        existing = await self.find_artist_by_name(name)
        if existing is not None:
            return existing
        return await self.create_artist(name, approved=approved)

    # Events -----------------------------------------------------------------

    async def find_candidate_matches(
        self,
        venue_id: UUID,
        window_start: datetime,
        window_end: datetime,
        name_prefilter: str,
    ) -> list[CanonicalEvent]:
        statement = (
            _events_with_artist()
            .where(
                event_table.c.venue_id == venue_id,
                event_table.c.start_at >= window_start,
                event_table.c.start_at <= window_end,
            )
            .order_by(event_table.c.start_at)
        )
        with self._session_factory() as session:
            events = [event_from_row(row) for row in session.execute(statement).mappings()]
        return [event for event in events if matches_prefilter(name_prefilter, event)]

    async def create_event(
        self,
        event: NormalizedEvent,
        *,
        artist_id: UUID,
        conflict: bool = False,
        approved: bool = False,
    ) -> CanonicalEvent:
        event_id = new_id()
        try:
            with self._session_factory() as session, session.begin():
                session.execute(
                    insert(event_table).values(
                        id=event_id,
                        name=event.label,
                        start_at=event.start_at,
                        end_at=event.end_at,
                        venue_id=event.venue_id,
                        artist_id=artist_id,
                        conflict=conflict,
                        approved=approved,
                    )
                )
        except IntegrityError as exc:
            if await self.find_event_at(event.venue_id, event.start_at) is not None:
                raise DuplicateKeyError(event.venue_id, event.start_at) from exc
            raise
        created = await self.get_event(event_id)
        if created is None:
            msg = f"Event {event_id} vanished after insert"
            raise RuntimeError(msg)
        return created

    async def get_event(self, event_id: UUID) -> CanonicalEvent | None:
        with self._session_factory() as session:
            row = session.execute(
                _events_with_artist().where(event_table.c.id == event_id)
            ).mappings().first()
        return event_from_row(row) if row is not None else None

    async def mark_event_conflicting(self, event_id: UUID) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(
                update(event_table).where(event_table.c.id == event_id).values(conflict=True)
            )

    async def get_events_in_month(
        self, venue_id: UUID, month_window: TimeWindow
    ) -> list[CanonicalEvent]:
        statement = (
            _events_with_artist()
            .where(
                event_table.c.venue_id == venue_id,
                event_table.c.start_at >= month_window.start,
                event_table.c.start_at <= month_window.end,
                event_table.c.cancelled.is_(False),
            )
            .order_by(event_table.c.start_at)
        )
        with self._session_factory() as session:
            return [event_from_row(row) for row in session.execute(statement).mappings()]

    async def find_event_at(self, venue_id: UUID, start_at: datetime) -> CanonicalEvent | None:
        with self._session_factory() as session:
            row = session.execute(
                _events_with_artist().where(
                    event_table.c.venue_id == venue_id,
                    event_table.c.start_at == start_at,
                )
            ).mappings().first()
        return event_from_row(row) if row is not None else None


__all__ = ["SqlAlchemyEventStore"]
