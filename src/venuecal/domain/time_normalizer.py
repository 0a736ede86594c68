"""Turn free-form date strings into absolute instants for a venue's timezone.

Interpretation order:

1. strict ISO-8601 date with time (an explicit offset is honoured, otherwise the
   value is wall-clock time at the venue);
2. explicit formats, date-major, most specific first. Month-first numeric dates
   are tried before day-first ones, and 24h times before 12h times;
3. date only, at the configured default time of day.

Local wall-clock values are attached to the zone for that calendar date, so the
UTC offset reflects daylight saving on the event day rather than today.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from functools import cache
from itertools import product
from typing import Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from venuecal.config.errors import ConfigurationError

from .errors import DateParseError

DEFAULT_TIME_OF_DAY: Final[time] = time(19, 0)

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{1,2}:\d{2}")
_ORDINAL_SUFFIX = re.compile(r"(?<=\d)(?:st|nd|rd|th)\b", re.IGNORECASE)
_AT_SEPARATOR = re.compile(r"\s+at\s+|\s*@\s*", re.IGNORECASE)
_MERIDIEM = re.compile(r"\b([ap])\.\s?m\.?(?=\W|$)", re.IGNORECASE)

DATE_FORMATS: Final[tuple[str, ...]] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%A, %B %d, %Y",
    "%A, %B %d %Y",
    "%A %B %d, %Y",
    "%A %B %d %Y",
    "%a, %b %d, %Y",
    "%a, %b %d %Y",
    "%a %b %d, %Y",
    "%a %b %d %Y",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%A, %d %B %Y",
    "%A %d %B %Y",
    "%a, %d %b %Y",
    "%a %d %b %Y",
    "%d %B %Y",
    "%d %b %Y",
)

TIME_FORMATS: Final[tuple[str, ...]] = (
    "%H:%M:%S",
    "%H:%M",
    "%I:%M %p",
    "%I:%M%p",
    "%I %p",
    "%I%p",
)

_DATE_TIME_SEPARATORS: Final[tuple[str, ...]] = (" ", ", ", " - ")

EXPLICIT_FORMATS: Final[tuple[str, ...]] = tuple(
    f"{date_format}{separator}{time_format}"
    for date_format, separator, time_format in product(
        DATE_FORMATS, _DATE_TIME_SEPARATORS, TIME_FORMATS
    )
)


@cache
def resolve_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from exc


def clean_date_text(raw: str) -> str:
    """Collapse whitespace and drop decorations that ``strptime`` cannot express."""

    text = " ".join(raw.split())
    text = _ORDINAL_SUFFIX.sub("", text)
    text = _AT_SEPARATOR.sub(" ", text)
    return _MERIDIEM.sub(lambda match: f"{match.group(1)}m", text).strip()


@dataclass(frozen=True, slots=True)
class TimeNormalizer:
    default_time_of_day: time = DEFAULT_TIME_OF_DAY

    def normalize(self, raw: str, timezone: str) -> datetime:
        """Return the UTC instant described by ``raw`` at ``timezone``.

        Raises ``DateParseError`` carrying ``raw`` when nothing matches and
        ``ConfigurationError`` for an unknown timezone name.
        """

        zone = resolve_zone(timezone)
        text = clean_date_text(raw)
        if not text:
            raise DateParseError(raw)

        parsed = _parse_iso_datetime(text)
        if parsed is None:
            parsed = _parse_explicit(text)
        if parsed is None:
            parsed_date = _parse_date_only(text)
            if parsed_date is not None:
                parsed = datetime.combine(parsed_date, self.default_time_of_day)
        if parsed is None:
            raise DateParseError(raw)

        if parsed.tzinfo is not None:
            return parsed.astimezone(UTC)
        return localize(parsed, zone)


def localize(local: datetime, zone: ZoneInfo) -> datetime:
    """Interpret naive ``local`` as wall-clock time in ``zone`` and return UTC."""

    return local.replace(tzinfo=zone).astimezone(UTC)


def _parse_iso_datetime(text: str) -> datetime | None:
    if not _ISO_DATETIME.match(text):
        return None
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _parse_explicit(text: str) -> datetime | None:
    for pattern in EXPLICIT_FORMATS:
        try:
            return datetime.strptime(text, pattern)  # noqa: DTZ007
        except ValueError:
            continue
    return None


def _parse_date_only(text: str) -> date | None:
    for pattern in DATE_FORMATS:
        try:
            return datetime.strptime(text, pattern).date()  # noqa: DTZ007
        except ValueError:
            continue
    return None
