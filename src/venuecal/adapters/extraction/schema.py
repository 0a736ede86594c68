"""Pydantic models for the extraction service payloads."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from logging import getLogger
from typing import TYPE_CHECKING, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from venuecal.domain.model import RawEventCandidate

if TYPE_CHECKING:
    from venuecal.domain.model import CanonicalEvent, Venue

log = getLogger(__name__)

_CODE_FENCE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)


class ExtractionBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class VenuePayload(ExtractionBaseModel):
    id: str
    name: str
    website: str | None = None
    events_path: str | None = Field(default=None, serialization_alias="eventsPath")
    timezone: str | None = None


class KnownEventPayload(ExtractionBaseModel):
    artist_name: str | None = Field(default=None, serialization_alias="artistName")
    event_name: str = Field(serialization_alias="eventName")
    start_date: str = Field(serialization_alias="startDate")


class ExtractionRequest(ExtractionBaseModel):
    venue: VenuePayload
    events_this_month: list[KnownEventPayload] = Field(
        default_factory=list["KnownEventPayload"], serialization_alias="eventsThisMonth"
    )

    @classmethod
    def for_venue(cls, venue: Venue, events_this_month: Sequence[CanonicalEvent]) -> ExtractionRequest:
        return cls(
            venue=VenuePayload(
                id=str(venue.id),
                name=venue.name,
                website=venue.website,
                events_path=venue.events_path,
                timezone=venue.timezone,
            ),
            events_this_month=[
                KnownEventPayload(
                    artist_name=event.artist_name,
                    event_name=event.name,
                    start_date=event.start_at.isoformat(),
                )
                for event in events_this_month
            ],
        )

    def to_json(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class ExtractionResponse(ExtractionBaseModel):
    """Either a bare list of events or an object wrapping them under ``events``."""

    events: list[object] = Field(default_factory=list["object"])

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_list(cls, value: object) -> object:
        if isinstance(value, list):
            return {"events": value}
        return value


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, as model output often carries one."""

    match = _CODE_FENCE.match(text)
    if match is None:
        return text.strip()
    return match.group("body").strip()


def decode_response_text(text: str) -> ExtractionResponse:
    """Parse a response body; raises ``ValueError`` when it is not usable JSON."""

    payload = json.loads(strip_code_fence(text))
    return ExtractionResponse.model_validate(payload)


def parse_candidate_items(items: Sequence[object], venue: Venue) -> list[RawEventCandidate]:
    """Turn loosely-shaped items into candidates for ``venue``.

    Items that are not objects, or whose fields cannot be read at all, are logged
    and skipped. A missing ``venueId`` is filled in with the venue's id.
    """

    candidates: list[RawEventCandidate] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            log.warning("Skipping non-object candidate #%s for venue=%s", index, venue.name)
            continue
        try:
            candidate = RawEventCandidate.model_validate(cast("Mapping[str, object]", item))
        except ValidationError as exc:
            log.warning(
                "Skipping unreadable candidate #%s for venue=%s: %s",
                index,
                venue.name,
                exc.errors(include_url=False),
            )
            continue
        if candidate.venue_id is None:
            candidate = candidate.model_copy(update={"venue_id": str(venue.id)})
        candidates.append(candidate)
    return candidates


__all__ = [
    "ExtractionRequest",
    "ExtractionResponse",
    "decode_response_text",
    "parse_candidate_items",
    "strip_code_fence",
]
