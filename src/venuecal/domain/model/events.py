"""Persisted calendar entities. The store owns them; the engine reads and creates."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from datetime import datetime

VARIOUS_ARTIST_NAME: Final[str] = "Various"


def new_id() -> UUID:
    return uuid4()


@dataclass(frozen=True, slots=True, kw_only=True)
class Venue:
    id: UUID
    name: str
    website: str | None = None
    events_path: str | None = None
    timezone: str | None = None
    crawlable: bool = True


@dataclass(frozen=True, slots=True, kw_only=True)
class Artist:
    id: UUID
    name: str
    approved: bool = False

    @property
    def is_various(self) -> bool:
        return self.name == VARIOUS_ARTIST_NAME


@dataclass(frozen=True, slots=True, kw_only=True)
class CanonicalEvent:
    """A persisted event.

    ``artist_name`` is a read-only view of the owning artist's name, loaded with the
    event so matching does not need a second lookup.
    """

    id: UUID
    name: str
    start_at: datetime
    end_at: datetime
    venue_id: UUID
    artist_id: UUID
    artist_name: str | None = None
    conflict: bool = False
    cancelled: bool = False
    approved: bool = False

    def flagged_conflicting(self) -> CanonicalEvent:
        return replace(self, conflict=True)
