"""Schema validation for raw candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from venuecal.domain.errors import CandidateValidationError
from venuecal.domain.model import VARIOUS_ARTIST_NAME

if TYPE_CHECKING:
    from venuecal.domain.model import RawEventCandidate, Venue


class ValidatedCandidate(BaseModel):
    """A candidate with every field the pipeline relies on."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    artist_name: str = Field(min_length=1)
    event_name: str | None = None
    start_raw: str = Field(min_length=1)
    end_raw: str | None = None
    venue_id: UUID
    uncertain: bool = False
    various: bool = False

    @property
    def label(self) -> str:
        return self.event_name or self.artist_name


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'candidate'}: {error['msg']}"
        for error in exc.errors()
    )


def validate_candidate(candidate: RawEventCandidate, venue: Venue) -> ValidatedCandidate:
    """Check ``candidate`` against the venue being processed.

    A missing ``venue_id`` is filled with the venue's id; a different one is
    rejected. Raises ``CandidateValidationError``; it is ``reroutable`` when the
    record has an event title but no performer.
    """

    if candidate.artist_name is None and candidate.event_name is not None:
        raise CandidateValidationError(
            f"Candidate {candidate.event_name!r} has no artist name",
            reroutable=True,
        )

    venue_id = candidate.venue_id or str(venue.id)
    try:
        validated = ValidatedCandidate(
            artist_name=candidate.artist_name or "",
            event_name=candidate.event_name,
            start_raw=candidate.start_raw or "",
            end_raw=candidate.end_raw,
            venue_id=venue_id,  # pyright: ignore[reportArgumentType]
            uncertain=bool(candidate.uncertain),
            various=(candidate.artist_name or "").casefold() == VARIOUS_ARTIST_NAME.casefold(),
        )
    except ValidationError as exc:
        raise CandidateValidationError(
            f"Invalid candidate {candidate.label!r}: {_describe(exc)}"
        ) from exc

    if validated.venue_id != venue.id:
        raise CandidateValidationError(
            f"Candidate {validated.label!r} belongs to venue {validated.venue_id}, not {venue.id}"
        )
    if validated.various and validated.event_name is None:
        raise CandidateValidationError(f"Candidate under {VARIOUS_ARTIST_NAME!r} needs an event name")
    return validated


def reroute_to_various(candidate: RawEventCandidate) -> RawEventCandidate:
    """Attach a title-only candidate to the reserved "Various" artist."""

    return candidate.model_copy(update={"artist_name": VARIOUS_ARTIST_NAME})


__all__ = ["ValidatedCandidate", "reroute_to_various", "validate_candidate"]
