from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from venuecal.config import ReconciliationConfig
from venuecal.domain.errors import CircuitOpenError, TransientError
from venuecal.domain.model import RawEventCandidate
from venuecal.domain.reconciliation import ReconciliationPipeline
from venuecal.resilience import ExecutorConfig, ResilientExecutor
from tests.support.fakes import NOW, InMemoryEventStore, RecordingSleep, fixed_clock, make_venue

# 20:00 in Toronto on 2025-06-14 (EDT, UTC-4)
SHOW_RAW = "2025-06-14 20:00"
SHOW_AT = datetime(2025, 6, 15, 0, 0, tzinfo=UTC)


def _pipeline(
    store: InMemoryEventStore,
    executor: ResilientExecutor,
    *,
    config: ReconciliationConfig | None = None,
    now: datetime = NOW,
) -> ReconciliationPipeline:
    return ReconciliationPipeline(
        store, executor, config or ReconciliationConfig(), clock=fixed_clock(now)
    )


def _candidate(artist: str | None, start: str | None = SHOW_RAW, **extra: object) -> RawEventCandidate:
    return RawEventCandidate.model_validate({"artistName": artist, "startDate": start, **extra})


def test_new_candidate_is_persisted(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()

    created = asyncio.run(
        _pipeline(memory_store, executor).run(venue, [_candidate("Mike Smith Trio")])
    )

    assert len(created) == 1
    event = created[0]
    assert event.start_at == SHOW_AT
    assert event.end_at == SHOW_AT + timedelta(hours=2)
    assert event.venue_id == venue.id
    assert event.artist_name == "Mike Smith Trio"
    assert event.approved
    assert not event.conflict
    assert set(memory_store.artists) == {"Mike Smith Trio"}


def test_reprocessing_the_same_batch_creates_nothing(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    pipeline = _pipeline(memory_store, executor)
    batch = [_candidate("Mike Smith Trio"), _candidate("Jane Doe", "2025-06-20 21:00")]

    first = asyncio.run(pipeline.reconcile(venue, batch))
    second = asyncio.run(pipeline.reconcile(venue, batch))

    assert len(first.created) == 2
    assert second.created == []
    assert second.duplicates == 2
    assert len(memory_store.events) == 2


def test_near_identical_name_at_same_time_is_a_duplicate(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    memory_store.add_event(venue, artist_name="The Mike Smith Trio", start_at=SHOW_AT)

    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(venue, [_candidate("Mike Smith Trio")])
    )

    assert report.created == []
    assert report.duplicate_labels == ["Mike Smith Trio"]
    assert len(memory_store.events) == 1


def test_same_act_at_another_time_creates_a_flagged_pair(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    existing = memory_store.add_event(venue, artist_name="Mike Smith", start_at=SHOW_AT)

    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(
            venue, [_candidate("Mike Smith", "2025-06-14 21:00")]
        )
    )

    assert report.conflicts == 1
    assert len(report.created) == 1
    assert report.created[0].conflict
    assert memory_store.events[existing.id].conflict
    assert len(memory_store.events) == 2


@pytest.mark.parametrize(("days_ago", "created"), [(4, 0), (2, 1)])
def test_events_older_than_the_staleness_horizon_are_ignored(
    memory_store: InMemoryEventStore,
    executor: ResilientExecutor,
    days_ago: int,
    created: int,
) -> None:
    venue = make_venue()
    start = (NOW - timedelta(days=days_ago)).isoformat()

    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(venue, [_candidate("Mike Smith", start)])
    )

    assert len(report.created) == created
    assert report.stale == 1 - created
    assert len(memory_store.events) == created


def test_stale_candidate_still_flags_the_event_it_conflicts_with(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    old_show = NOW - timedelta(days=4)
    existing = memory_store.add_event(venue, artist_name="Mike Smith", start_at=old_show)
    start = (old_show + timedelta(hours=2)).isoformat()

    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(venue, [_candidate("Mike Smith", start)])
    )

    assert report.conflicts == 1
    assert report.stale == 1
    assert report.created == []
    assert memory_store.events[existing.id].conflict
    assert "create_event" not in memory_store.calls
    assert len(memory_store.events) == 1


def test_title_only_candidates_are_filed_under_various(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    batch = [
        _candidate(None, eventName="Jazz Brunch"),
        _candidate(None, "2025-06-21 11:00", eventName="Open Mic"),
    ]

    report = asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert report.rerouted == 2
    assert [event.name for event in report.created] == ["Jazz Brunch", "Open Mic"]
    assert {event.artist_name for event in report.created} == {"Various"}
    assert memory_store.calls.count("create_artist") == 1


def test_invalid_candidates_are_skipped_without_stopping_the_batch(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    batch = [_candidate(None, eventName=None), _candidate("Mike Smith")]

    report = asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert report.invalid == 1
    assert len(report.created) == 1


def test_unparseable_dates_are_logged_by_certainty(
    memory_store: InMemoryEventStore,
    executor: ResilientExecutor,
    caplog: pytest.LogCaptureFixture,
) -> None:
    venue = make_venue()
    batch = [_candidate("Sure Thing", "TBA"), _candidate("Maybe", "soon", unsure=True)]

    with caplog.at_level(logging.INFO, logger="venuecal.domain.reconciliation.pipeline"):
        report = asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert report.unparseable == 2
    levels = {
        record.levelno
        for record in caplog.records
        if record.getMessage().startswith("Dropping candidate")
    }
    assert levels == {logging.INFO, logging.WARNING}


def test_another_act_in_a_taken_slot_flags_the_occupant(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    occupant = memory_store.add_event(venue, artist_name="Completely Different", start_at=SHOW_AT)

    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(venue, [_candidate("Mike Smith")])
    )

    assert report.created == []
    assert report.failed == 0
    assert report.duplicates == 0
    assert report.conflicts == 1
    assert report.blocked == 1
    assert memory_store.events[occupant.id].conflict
    assert len(memory_store.events) == 1
    assert memory_store.calls.count("create_event") == 1


def test_same_act_in_a_taken_slot_is_a_duplicate(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    occupant = memory_store.add_event(venue, artist_name="Mike Smith", start_at=SHOW_AT)

    # "mikesmyth" escapes the containment prefilter but scores 8/9 against the occupant.
    report = asyncio.run(
        _pipeline(memory_store, executor).reconcile(venue, [_candidate("Mike Smyth")])
    )

    assert report.duplicates == 1
    assert report.conflicts == 0
    assert report.blocked == 0
    assert not memory_store.events[occupant.id].conflict
    assert memory_store.calls.count("create_event") == 1


def test_transient_store_failures_are_retried(
    memory_store: InMemoryEventStore,
    executor: ResilientExecutor,
    recording_sleep: RecordingSleep,
) -> None:
    venue = make_venue()
    memory_store.fail("create_event", TransientError("database is locked"), times=2)

    created = asyncio.run(_pipeline(memory_store, executor).run(venue, [_candidate("Mike Smith")]))

    assert len(created) == 1
    assert recording_sleep.calls == [0.01, 0.02]


def test_a_failing_candidate_does_not_abort_the_batch(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    memory_store.fail("create_event", TransientError("database is locked"), times=3)
    batch = [_candidate("Mike Smith"), _candidate("Jane Doe", "2025-06-20 21:00")]

    report = asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert report.failed == 1
    assert [event.artist_name for event in report.created] == ["Jane Doe"]


def test_open_circuit_ends_the_venue(memory_store: InMemoryEventStore) -> None:
    venue = make_venue()
    executor = ResilientExecutor(
        ExecutorConfig(max_retries=1, circuit_breaker_threshold=1),
        sleep=RecordingSleep(),
    )
    memory_store.fail("find_candidate_matches", TransientError("unreachable"))
    batch = [_candidate("Mike Smith"), _candidate("Jane Doe", "2025-06-20 21:00")]

    with pytest.raises(CircuitOpenError):
        asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert memory_store.events == {}


def test_end_time_before_start_rolls_to_the_next_day(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    candidate = _candidate(
        "Late Night", "June 14, 2025 10:00 PM", endDate="June 14, 2025 1:00 AM"
    )

    created = asyncio.run(_pipeline(memory_store, executor).run(venue, [candidate]))

    assert created[0].start_at == datetime(2025, 6, 15, 2, 0, tzinfo=UTC)
    assert created[0].end_at == datetime(2025, 6, 15, 5, 0, tzinfo=UTC)


def test_unparseable_end_time_uses_default_duration(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    config = ReconciliationConfig(default_event_duration_hours=3)

    created = asyncio.run(
        _pipeline(memory_store, executor, config=config).run(
            venue, [_candidate("Mike Smith", endDate="late")]
        )
    )

    assert created[0].end_at == SHOW_AT + timedelta(hours=3)


def test_venue_timezone_overrides_target_timezone(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue(timezone="Europe/London")

    created = asyncio.run(_pipeline(memory_store, executor).run(venue, [_candidate("Mike Smith")]))

    assert created[0].start_at == datetime(2025, 6, 14, 19, 0, tzinfo=UTC)


def test_existing_artists_are_reused(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    venue = make_venue()
    batch = [_candidate("Mike Smith"), _candidate("Mike Smith", "2025-06-28 20:00")]

    report = asyncio.run(_pipeline(memory_store, executor).reconcile(venue, batch))

    assert len(report.created) == 2
    assert memory_store.calls.count("create_artist") == 1
    assert report.created[0].artist_id == report.created[1].artist_id


def test_new_events_can_await_approval(
    memory_store: InMemoryEventStore, executor: ResilientExecutor
) -> None:
    config = replace(ReconciliationConfig(), approve_new_events=False)

    created = asyncio.run(
        _pipeline(memory_store, executor, config=config).run(make_venue(), [_candidate("Mike")])
    )

    assert not created[0].approved
