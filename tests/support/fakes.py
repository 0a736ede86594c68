"""In-memory stand-ins for the store and extraction ports."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from venuecal.domain.errors import DuplicateKeyError
from venuecal.domain.matching import matches_prefilter
from venuecal.domain.model import Artist, CanonicalEvent, Venue, new_id

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from venuecal.domain.model import NormalizedEvent, RawEventCandidate
    from venuecal.domain.time_windows import TimeWindow


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def fixed_clock(reference: datetime = NOW) -> Callable[[], datetime]:
    def _clock() -> datetime:
        return reference

    return _clock


class ManualMonotonic:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_venue(name: str = "The Rex", *, timezone: str | None = None) -> Venue:
    return Venue(id=new_id(), name=name, website="https://venue.example", timezone=timezone)


@dataclass
class InMemoryEventStore:
    venues: list[Venue] = field(default_factory=list)
    artists: dict[str, Artist] = field(default_factory=dict)
    events: dict[UUID, CanonicalEvent] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    failures: dict[str, list[BaseException]] = field(default_factory=lambda: defaultdict(list))

    def fail(self, operation: str, error: BaseException, *, times: int = 1) -> None:
        self.failures[operation].extend([error] * times)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        pending = self.failures.get(operation)
        if pending:
            raise pending.pop(0)

    def add_event(
        self,
        venue: Venue,
        *,
        artist_name: str,
        start_at: datetime,
        name: str | None = None,
    ) -> CanonicalEvent:
        artist = self.artists.get(artist_name) or Artist(id=new_id(), name=artist_name)
        self.artists[artist_name] = artist
        event = CanonicalEvent(
            id=new_id(),
            name=name or artist_name,
            start_at=start_at,
            end_at=start_at + timedelta(hours=2),
            venue_id=venue.id,
            artist_id=artist.id,
            artist_name=artist.name,
        )
        self.events[event.id] = event
        return event

    async def list_crawlable_venues(self) -> list[Venue]:
        self._enter("list_crawlable_venues")
        return [venue for venue in self.venues if venue.crawlable]

    async def find_artist_by_name(self, name: str) -> Artist | None:
        self._enter("find_artist_by_name")
        return self.artists.get(name)

    async def create_artist(self, name: str, *, approved: bool = False) -> Artist:
        self._enter("create_artist")
        if name not in self.artists:
            self.artists[name] = Artist(id=new_id(), name=name, approved=approved)
        return self.artists[name]

    async def find_candidate_matches(
        self,
        venue_id: UUID,
        window_start: datetime,
        window_end: datetime,
        name_prefilter: str,
    ) -> list[CanonicalEvent]:
        self._enter("find_candidate_matches")
        return [
            event
            for event in self.events.values()
            if event.venue_id == venue_id
            and window_start <= event.start_at <= window_end
            and matches_prefilter(name_prefilter, event)
        ]

    async def create_event(
        self,
        event: NormalizedEvent,
        *,
        artist_id: UUID,
        conflict: bool = False,
        approved: bool = False,
    ) -> CanonicalEvent:
        self._enter("create_event")
        for existing in self.events.values():
            if existing.venue_id == event.venue_id and existing.start_at == event.start_at:
                raise DuplicateKeyError(event.venue_id, event.start_at)
        artist_name = next(
            (artist.name for artist in self.artists.values() if artist.id == artist_id), None
        )
        created = CanonicalEvent(
            id=new_id(),
            name=event.label,
            start_at=event.start_at,
            end_at=event.end_at,
            venue_id=event.venue_id,
            artist_id=artist_id,
            artist_name=artist_name,
            conflict=conflict,
            approved=approved,
        )
        self.events[created.id] = created
        return created

    async def find_event_at(self, venue_id: UUID, start_at: datetime) -> CanonicalEvent | None:
        self._enter("find_event_at")
        return next(
            (
                event
                for event in self.events.values()
                if event.venue_id == venue_id and event.start_at == start_at
            ),
            None,
        )

    async def mark_event_conflicting(self, event_id: UUID) -> None:
        self._enter("mark_event_conflicting")
        self.events[event_id] = replace(self.events[event_id], conflict=True)

    async def get_events_in_month(
        self, venue_id: UUID, month_window: TimeWindow
    ) -> list[CanonicalEvent]:
        self._enter("get_events_in_month")
        return sorted(
            (
                event
                for event in self.events.values()
                if event.venue_id == venue_id and month_window.contains(event.start_at)
            ),
            key=lambda event: event.start_at,
        )


@dataclass
class FakeCandidateSource:
    by_venue: dict[str, list[RawEventCandidate]] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)
    seen_month_events: dict[str, list[CanonicalEvent]] = field(default_factory=dict)

    async def fetch_candidates(
        self,
        venue: Venue,
        events_this_month: Sequence[CanonicalEvent],
    ) -> list[RawEventCandidate]:
        self.seen_month_events[venue.name] = list(events_this_month)
        error = self.errors.get(venue.name)
        if error is not None:
            raise error
        return list(self.by_venue.get(venue.name, []))
