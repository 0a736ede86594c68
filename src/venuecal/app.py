"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from venuecal.adapters.extraction import HttpCandidateSource, JsonFileCandidateSource
from venuecal.adapters.sqlalchemy import SqlAlchemyEventStore, is_started, startup
from venuecal.config import ConfigurationError, ReconciliationConfig, get_reconciliation_config
from venuecal.domain.errors import CircuitOpenError
from venuecal.domain.reconciliation import ReconciliationPipeline, VenueReport
from venuecal.domain.time_normalizer import resolve_zone
from venuecal.domain.time_windows import TimeWindow, utcnow
from venuecal.resilience import BreakerRegistry, ResilientExecutor

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Collection
    from pathlib import Path

    from venuecal.domain.model import Venue
    from venuecal.domain.ports import CandidateSource, EventStore
    from venuecal.domain.time_windows import Clock

log = getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    """What happened across all venues of one run."""

    reports: list[VenueReport] = field(default_factory=list[VenueReport])
    skipped_venues: list[str] = field(default_factory=list[str])
    failed_venues: list[str] = field(default_factory=list[str])
    cancelled: bool = False

    @property
    def created(self) -> int:
        return sum(len(report.created) for report in self.reports)


def build_executor(config: ReconciliationConfig) -> ResilientExecutor:
    return ResilientExecutor(
        config.executor,
        breakers=BreakerRegistry(scope=config.breaker_scope),
    )


async def reconcile_venues_async(
    *,
    store: EventStore,
    source: CandidateSource,
    config: ReconciliationConfig | None = None,
    executor: ResilientExecutor | None = None,
    venue_names: Collection[str] | None = None,
    stop: asyncio.Event | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Clock = utcnow,
) -> RunSummary:
    """Reconcile every crawlable venue one after the other.

    A venue whose circuit is open, or whose run fails outright, is logged and
    skipped; the remaining venues still run. ``stop`` is honoured between venues.
    """

    effective_config = config or get_reconciliation_config()
    effective_executor = executor or build_executor(effective_config)
    pipeline = ReconciliationPipeline(store, effective_executor, effective_config, clock=clock)

    venues = await effective_executor.execute(
        store.list_crawlable_venues, "store.list_crawlable_venues"
    )
    if venue_names:
        wanted = set(venue_names)
        unknown = wanted - {venue.name for venue in venues}
        if unknown:
            log.warning("No crawlable venue named: %s", ", ".join(sorted(unknown)))
        venues = [venue for venue in venues if venue.name in wanted]

    log.info("Starting reconciliation for %s venue(s)", len(venues))
    summary = RunSummary()
    for index, venue in enumerate(venues):
        if _stop_requested(stop, venues_left=len(venues) - index):
            summary.cancelled = True
            break
        if index and effective_config.venue_pause_seconds:
            await sleep(effective_config.venue_pause_seconds)
            if _stop_requested(stop, venues_left=len(venues) - index):
                summary.cancelled = True
                break
        try:
            report = await _reconcile_venue(
                venue,
                store=store,
                source=source,
                executor=effective_executor,
                pipeline=pipeline,
                config=effective_config,
                clock=clock,
            )
        except CircuitOpenError as exc:
            summary.skipped_venues.append(venue.name)
            log.warning("Skipping venue=%s: %s", venue.name, exc)
        except Exception:
            summary.failed_venues.append(venue.name)
            log.exception("Reconciliation failed for venue=%s", venue.name)
        else:
            summary.reports.append(report)

    log.info(
        "Finished reconciliation: venues=%s created=%s skipped=%s failed=%s cancelled=%s",
        len(summary.reports),
        summary.created,
        len(summary.skipped_venues),
        len(summary.failed_venues),
        summary.cancelled,
    )
    return summary


def _stop_requested(stop: asyncio.Event | None, *, venues_left: int) -> bool:
    if stop is None or not stop.is_set():
        return False
    log.info("Stop requested; %s venue(s) left unprocessed", venues_left)
    return True


async def _reconcile_venue(
    venue: Venue,
    *,
    store: EventStore,
    source: CandidateSource,
    executor: ResilientExecutor,
    pipeline: ReconciliationPipeline,
    config: ReconciliationConfig,
    clock: Clock,
) -> VenueReport:
    timezone = venue.timezone or config.target_timezone
    resolve_zone(timezone)
    month = TimeWindow.month_of(clock(), timezone)
    scope_key = str(venue.id)

    known = await executor.execute(
        lambda: store.get_events_in_month(venue.id, month),
        "store.get_events_in_month",
        scope_key=scope_key,
    )
    candidates = await executor.execute(
        lambda: source.fetch_candidates(venue, known),
        "extraction.fetch",
        scope_key=scope_key,
    )
    log.info("Reconciling %s candidate(s) for venue=%s", len(candidates), venue.name)
    return await pipeline.reconcile(venue, candidates)


def _ensure_started() -> None:
    if not is_started():
        startup()


def reconcile_venues(
    *,
    candidates_path: Path | None = None,
    venue_names: Collection[str] | None = None,
    pause_seconds: float | None = None,
    stop: asyncio.Event | None = None,
) -> RunSummary:
    """Run reconciliation against the configured database.

    Candidates come from ``candidates_path`` when given, otherwise from the
    extraction service.
    """

    _ensure_started()
    config = get_reconciliation_config()
    if pause_seconds is not None:
        config = replace(config, venue_pause_seconds=pause_seconds)
    store = SqlAlchemyEventStore()

    async def _run() -> RunSummary:
        if candidates_path is not None:
            return await reconcile_venues_async(
                store=store,
                source=JsonFileCandidateSource(candidates_path),
                config=config,
                venue_names=venue_names,
                stop=stop,
            )
        async with HttpCandidateSource() as source:
            return await reconcile_venues_async(
                store=store,
                source=source,
                config=config,
                venue_names=venue_names,
                stop=stop,
            )

    return asyncio.run(_run())


def add_venue(
    name: str,
    *,
    website: str | None = None,
    events_path: str | None = None,
    timezone: str | None = None,
    crawlable: bool = True,
) -> Venue:
    if timezone is not None:
        resolve_zone(timezone)
    _ensure_started()
    return asyncio.run(
        SqlAlchemyEventStore().add_venue(
            name,
            website=website,
            events_path=events_path,
            timezone=timezone,
            crawlable=crawlable,
        )
    )


class VenueSeed(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    website: str | None = None
    events_path: str | None = Field(default=None, alias="eventsPath")
    timezone: str | None = None
    crawlable: bool = True


_VENUE_SEEDS = TypeAdapter(list[VenueSeed])


def load_venue_seeds(path: Path) -> list[VenueSeed]:
    try:
        return _VENUE_SEEDS.validate_python(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise ConfigurationError(f"Cannot load venue seeds from {path}: {exc}") from exc


def seed_venues(path: Path) -> list[Venue]:
    """Register every venue listed in a JSON file; existing names are kept as they are."""

    seeds = load_venue_seeds(path)
    for seed in seeds:
        if seed.timezone is not None:
            resolve_zone(seed.timezone)
    _ensure_started()
    store = SqlAlchemyEventStore()

    async def _seed() -> list[Venue]:
        return [
            await store.add_venue(
                seed.name,
                website=seed.website,
                events_path=seed.events_path,
                timezone=seed.timezone,
                crawlable=seed.crawlable,
            )
            for seed in seeds
        ]

    venues = asyncio.run(_seed())
    log.info("Seeded %s venue(s) from %s", len(venues), path)
    return venues
