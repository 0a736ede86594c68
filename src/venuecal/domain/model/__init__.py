"""Domain entities for venue calendars."""

from __future__ import annotations

from .candidates import NormalizedEvent, RawEventCandidate
from .events import VARIOUS_ARTIST_NAME, Artist, CanonicalEvent, Venue, new_id

__all__ = [
    "VARIOUS_ARTIST_NAME",
    "Artist",
    "CanonicalEvent",
    "NormalizedEvent",
    "RawEventCandidate",
    "Venue",
    "new_id",
]
