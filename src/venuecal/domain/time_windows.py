"""Closed time intervals used for match windows and monthly context."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Time window values must include timezone information")
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Inclusive ``[start, end]`` interval in UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        start = ensure_aware(self.start)
        end = ensure_aware(self.end)
        if start > end:
            raise ValueError("Time window start must be before end")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def around(cls, anchor: datetime, radius: timedelta) -> TimeWindow:
        if radius < timedelta(0):
            raise ValueError("Window radius must be non-negative")
        return cls(start=anchor - radius, end=anchor + radius)

    @classmethod
    def month_of(cls, anchor: datetime, timezone: str) -> TimeWindow:
        """Calendar month containing ``anchor`` as observed in ``timezone``."""

        zone = ZoneInfo(timezone)
        local = ensure_aware(anchor).astimezone(zone)
        first = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        if first.month == 12:  # noqa: PLR2004
            following = first.replace(year=first.year + 1, month=1)
        else:
            following = first.replace(month=first.month + 1)
        # Re-attach the zone so a DST change inside the month yields the right offsets.
        start = first.replace(tzinfo=zone)
        end = following.replace(tzinfo=zone) - timedelta(microseconds=1)
        return cls(start=start, end=end)

    def contains(self, instant: datetime) -> bool:
        return self.start <= ensure_aware(instant) <= self.end


__all__ = ["Clock", "TimeWindow", "ensure_aware", "utcnow"]
