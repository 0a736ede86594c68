"""Ports for persisting venue calendars."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from venuecal.domain.model import Artist, CanonicalEvent, NormalizedEvent, Venue
    from venuecal.domain.time_windows import TimeWindow


@runtime_checkable
class EventStore(Protocol):
    """Persistence contract used by the reconciliation pipeline.

    Implementations must return UTC-aware datetimes and keep at most one event per
    ``(venue_id, start_at)``.
    """

    async def list_crawlable_venues(self) -> list[Venue]: ...

    async def find_artist_by_name(self, name: str) -> Artist | None: ...

    async def create_artist(self, name: str, *, approved: bool = False) -> Artist:
        """Create ``name`` or return the artist that already carries it."""
        ...

    async def find_candidate_matches(
        self,
        venue_id: UUID,
        window_start: datetime,
        window_end: datetime,
        name_prefilter: str,
    ) -> list[CanonicalEvent]: ...

    async def create_event(
        self,
        event: NormalizedEvent,
        *,
        artist_id: UUID,
        conflict: bool = False,
        approved: bool = False,
    ) -> CanonicalEvent:
        """Persist ``event``; raises ``DuplicateKeyError`` when its slot is taken."""
        ...

    async def find_event_at(self, venue_id: UUID, start_at: datetime) -> CanonicalEvent | None:
        """Return the event holding the ``(venue_id, start_at)`` slot, if any."""
        ...

    async def mark_event_conflicting(self, event_id: UUID) -> None: ...

    async def get_events_in_month(
        self, venue_id: UUID, month_window: TimeWindow
    ) -> list[CanonicalEvent]: ...


__all__ = ["EventStore"]
