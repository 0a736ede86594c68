"""Ports for obtaining candidate events from the extraction step."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from venuecal.domain.model import CanonicalEvent, RawEventCandidate, Venue


@runtime_checkable
class CandidateSource(Protocol):
    """Produces unvalidated candidates for one venue.

    ``events_this_month`` is what the calendar already holds for the venue, so an
    extractor can avoid re-reporting known events.
    """

    async def fetch_candidates(
        self,
        venue: Venue,
        events_this_month: Sequence[CanonicalEvent],
    ) -> list[RawEventCandidate]: ...


__all__ = ["CandidateSource"]
