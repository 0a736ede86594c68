"""Per-venue ingestion of candidate events into the canonical calendar.

For every candidate, in the order supplied:

1. validate it (title-only records are filed under "Various");
2. turn its start and end into UTC instants;
3. look up stored events in the match window and classify it;
4. skip duplicates and flag the stored side of a conflict;
5. resolve the artist;
6. persist it unless it lies in the past beyond the staleness horizon.

A candidate that lands on an occupied slot with a different act flags the
occupant and is not created.

Failures stay with the candidate that caused them, except ``CircuitOpenError``
which ends the venue so the caller can move on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from venuecal.config.reconciliation import ReconciliationConfig
from venuecal.domain.errors import (
    CandidateValidationError,
    CircuitOpenError,
    DateParseError,
    DuplicateKeyError,
)
from venuecal.domain.matching import Classification, EventMatcher, score
from venuecal.domain.model import VARIOUS_ARTIST_NAME, NormalizedEvent
from venuecal.domain.time_normalizer import TimeNormalizer, resolve_zone
from venuecal.domain.time_windows import utcnow

from .validation import reroute_to_various, validate_candidate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from datetime import datetime
    from uuid import UUID

    from venuecal.domain.model import Artist, CanonicalEvent, RawEventCandidate, Venue
    from venuecal.domain.ports import EventStore
    from venuecal.domain.time_windows import Clock
    from venuecal.resilience import ResilientExecutor

    from .validation import ValidatedCandidate

log = logging.getLogger(__name__)


@dataclass(slots=True)
class VenueReport:
    """Outcome counters for one venue run."""

    venue_id: UUID
    venue_name: str
    created: list[CanonicalEvent] = field(default_factory=list["CanonicalEvent"])
    duplicate_labels: list[str] = field(default_factory=list[str])
    conflicts: int = 0
    stale: int = 0
    invalid: int = 0
    unparseable: int = 0
    failed: int = 0
    rerouted: int = 0
    blocked: int = 0

    @property
    def duplicates(self) -> int:
        return len(self.duplicate_labels)

    @property
    def processed(self) -> int:
        return (
            len(self.created)
            + self.duplicates
            + self.stale
            + self.invalid
            + self.unparseable
            + self.failed
            + self.blocked
        )


class ReconciliationPipeline:
    def __init__(
        self,
        store: EventStore,
        executor: ResilientExecutor,
        config: ReconciliationConfig | None = None,
        *,
        normalizer: TimeNormalizer | None = None,
        matcher: EventMatcher | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.executor = executor
        self.config = config or ReconciliationConfig()
        self.normalizer = normalizer or TimeNormalizer(self.config.default_event_time_of_day)
        self.matcher = matcher or EventMatcher(
            threshold=self.config.similarity_threshold,
            window_hours=self.config.match_window_hours,
        )
        self._clock = clock
        self._various: Artist | None = None

    async def run(self, venue: Venue, candidates: Iterable[RawEventCandidate]) -> list[CanonicalEvent]:
        """Reconcile ``candidates`` for ``venue`` and return the events created."""

        report = await self.reconcile(venue, candidates)
        return report.created

    async def reconcile(
        self, venue: Venue, candidates: Iterable[RawEventCandidate]
    ) -> VenueReport:
        timezone = venue.timezone or self.config.target_timezone
        resolve_zone(timezone)
        stale_before = self._clock() - timedelta(days=self.config.staleness_days)
        report = VenueReport(venue_id=venue.id, venue_name=venue.name)

        for candidate in candidates:
            try:
                await self._reconcile_one(venue, candidate, timezone, stale_before, report)
            except CircuitOpenError:
                log.warning(
                    "Circuit open while reconciling venue=%s; abandoning remaining candidates",
                    venue.name,
                )
                raise
            except Exception:  # noqa: BLE001
                report.failed += 1
                log.exception(
                    "Failed to reconcile candidate=%r venue=%s", candidate.label, venue.name
                )

        if report.duplicate_labels:
            log.info(
                "Skipped %s duplicate(s) for venue=%s: %s",
                report.duplicates,
                venue.name,
                ", ".join(report.duplicate_labels),
            )
        log.info(
            "Reconciled venue=%s created=%s duplicates=%s conflicts=%s stale=%s invalid=%s "
            "unparseable=%s failed=%s rerouted=%s blocked=%s",
            venue.name,
            len(report.created),
            report.duplicates,
            report.conflicts,
            report.stale,
            report.invalid,
            report.unparseable,
            report.failed,
            report.rerouted,
            report.blocked,
        )
        return report

    async def _reconcile_one(
        self,
        venue: Venue,
        candidate: RawEventCandidate,
        timezone: str,
        stale_before: datetime,
        report: VenueReport,
    ) -> None:
        validated = self._validate(venue, candidate, report)
        if validated is None:
            return

        try:
            start_at = self.normalizer.normalize(validated.start_raw, timezone)
        except DateParseError as exc:
            report.unparseable += 1
            level = logging.INFO if validated.uncertain else logging.WARNING
            log.log(level, "Dropping candidate=%r venue=%s: %s", validated.label, venue.name, exc)
            return

        event = NormalizedEvent(
            artist_name=validated.artist_name,
            event_name=validated.event_name,
            start_at=start_at,
            end_at=self._end_time(validated, start_at, timezone),
            venue_id=venue.id,
            uncertain=validated.uncertain,
            various=validated.various,
        )

        window = self.matcher.match_window(event.start_at)
        existing = await self._call(
            lambda: self.store.find_candidate_matches(
                venue.id, window.start, window.end, event.match_name
            ),
            "store.find_candidate_matches",
            venue,
        )
        match = self.matcher.classify(event, existing)

        conflict = False
        if match.classification is Classification.DUPLICATE:
            report.duplicate_labels.append(event.label)
            log.debug(
                "Duplicate candidate=%r venue=%s score=%.3f", event.label, venue.name, match.score
            )
            return
        if match.classification is Classification.CONFLICT and match.matched_event is not None:
            matched = match.matched_event
            log.warning(
                "Conflict for candidate=%r venue=%s: stored event %s at %s (score=%.3f)",
                event.label,
                venue.name,
                matched.id,
                matched.start_at.isoformat(),
                match.score,
            )
            await self._call(
                lambda: self.store.mark_event_conflicting(matched.id),
                "store.mark_event_conflicting",
                venue,
            )
            report.conflicts += 1
            conflict = True

        artist = await self._artist_for(event, venue)

        if event.start_at < stale_before:
            report.stale += 1
            log.debug(
                "Not persisting stale candidate=%r venue=%s start=%s",
                event.label,
                venue.name,
                event.start_at.isoformat(),
            )
            return

        try:
            created = await self._call(
                lambda: self.store.create_event(
                    event,
                    artist_id=artist.id,
                    conflict=conflict,
                    approved=self.config.approve_new_events,
                ),
                "store.create_event",
                venue,
            )
        except DuplicateKeyError:
            await self._settle_taken_slot(event, venue, report, already_counted=conflict)
            return
        report.created.append(created)
        log.debug("Created event %s for candidate=%r venue=%s", created.id, event.label, venue.name)

    async def _settle_taken_slot(
        self,
        event: NormalizedEvent,
        venue: Venue,
        report: VenueReport,
        *,
        already_counted: bool,
    ) -> None:
        """Handle a candidate whose ``(venue, start)`` slot is already occupied.

        The same act in the slot is a duplicate. Any other act is a conflict: the
        occupant is flagged and the candidate is not created.
        """

        occupant = await self._call(
            lambda: self.store.find_event_at(venue.id, event.start_at),
            "store.find_event_at",
            venue,
        )
        occupant_score = score(event.match_name, occupant) if occupant is not None else 0.0
        if occupant is None or occupant_score > self.matcher.threshold:
            report.duplicate_labels.append(event.label)
            log.info(
                "Event slot already taken for candidate=%r venue=%s start=%s",
                event.label,
                venue.name,
                event.start_at.isoformat(),
            )
            return

        log.warning(
            "Slot venue=%s start=%s holds %r; flagging it against candidate=%r (score=%.3f)",
            venue.name,
            event.start_at.isoformat(),
            occupant.name,
            event.label,
            occupant_score,
        )
        occupant_id = occupant.id
        await self._call(
            lambda: self.store.mark_event_conflicting(occupant_id),
            "store.mark_event_conflicting",
            venue,
        )
        report.blocked += 1
        if not already_counted:
            report.conflicts += 1

    def _validate(
        self, venue: Venue, candidate: RawEventCandidate, report: VenueReport
    ) -> ValidatedCandidate | None:
        try:
            return validate_candidate(candidate, venue)
        except CandidateValidationError as exc:
            if not exc.reroutable:
                report.invalid += 1
                log.warning("Skipping invalid candidate venue=%s: %s", venue.name, exc)
                return None

        try:
            validated = validate_candidate(reroute_to_various(candidate), venue)
        except CandidateValidationError as exc:
            report.invalid += 1
            log.warning("Skipping invalid candidate venue=%s: %s", venue.name, exc)
            return None
        report.rerouted += 1
        log.info(
            "Filed candidate=%r under %s for venue=%s",
            validated.label,
            VARIOUS_ARTIST_NAME,
            venue.name,
        )
        return validated

    def _end_time(self, candidate: ValidatedCandidate, start_at: datetime, timezone: str) -> datetime:
        default_end = start_at + timedelta(hours=self.config.default_event_duration_hours)
        if candidate.end_raw is None:
            return default_end
        try:
            end_at = self.normalizer.normalize(candidate.end_raw, timezone)
        except DateParseError:
            log.debug(
                "Unparseable end time %r for candidate=%r; using default duration",
                candidate.end_raw,
                candidate.label,
            )
            return default_end
        if end_at < start_at:
            # A show running past midnight reports the end on the start's date.
            end_at += timedelta(days=1)
        return end_at if end_at >= start_at else default_end

    async def _artist_for(self, event: NormalizedEvent, venue: Venue) -> Artist:
        if event.various:
            if self._various is None:
                self._various = await self._find_or_create_artist(VARIOUS_ARTIST_NAME, venue)
            return self._various
        return await self._find_or_create_artist(event.artist_name, venue)

    async def _find_or_create_artist(self, name: str, venue: Venue) -> Artist:
        artist = await self._call(
            lambda: self.store.find_artist_by_name(name), "store.find_artist_by_name", venue
        )
        if artist is not None:
            return artist
        log.info("Creating artist %r", name)
        return await self._call(
            lambda: self.store.create_artist(name), "store.create_artist", venue
        )

    async def _call[T](
        self, operation: Callable[[], Awaitable[T]], operation_name: str, venue: Venue
    ) -> T:
        return await self.executor.execute(operation, operation_name, scope_key=str(venue.id))


__all__ = ["ReconciliationPipeline", "VenueReport"]
