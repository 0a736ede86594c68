"""Candidate records coming out of the extraction step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class RawEventCandidate(BaseModel):
    """One unvalidated event as reported by the extraction collaborator.

    Parsing is deliberately lenient: every field is optional and loosely typed so
    that a malformed record still reaches the pipeline, where it is validated,
    rerouted or skipped with a log line.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    artist_name: str | None = Field(
        default=None, validation_alias=AliasChoices("artist_name", "artistName", "artist")
    )
    event_name: str | None = Field(
        default=None, validation_alias=AliasChoices("event_name", "eventName")
    )
    start_raw: str | None = Field(
        default=None, validation_alias=AliasChoices("start_raw", "startRaw", "startDate")
    )
    end_raw: str | None = Field(
        default=None, validation_alias=AliasChoices("end_raw", "endRaw", "endDate")
    )
    venue_id: str | None = Field(
        default=None, validation_alias=AliasChoices("venue_id", "venueId")
    )
    uncertain: bool | None = Field(
        default=None, validation_alias=AliasChoices("uncertain", "unsure")
    )

    @field_validator("artist_name", "event_name", "start_raw", "end_raw", "venue_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        return _blank_to_none(value)

    @property
    def label(self) -> str:
        """Human-readable identity for log lines."""

        return self.event_name or self.artist_name or "<unnamed>"


@dataclass(frozen=True, slots=True, kw_only=True)
class NormalizedEvent:
    """A validated candidate whose times are absolute UTC instants."""

    artist_name: str
    event_name: str | None
    start_at: datetime
    end_at: datetime
    venue_id: UUID
    uncertain: bool = False
    various: bool = False

    @property
    def match_name(self) -> str:
        """Identity used for duplicate detection.

        Events filed under the "Various" artist are identified by their title.
        """

        if self.various and self.event_name:
            return self.event_name
        return self.artist_name

    @property
    def label(self) -> str:
        return self.event_name or self.artist_name
