"""Candidates read from a JSON file instead of a live extraction service."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, cast

from .schema import parse_candidate_items, strip_code_fence

if TYPE_CHECKING:
    from pathlib import Path

    from venuecal.domain.model import CanonicalEvent, RawEventCandidate, Venue

log = getLogger(__name__)


class CandidateFileError(ValueError):
    """Raised when a candidates file cannot be read as expected."""


@dataclass(slots=True)
class JsonFileCandidateSource:
    """Serves candidates from a file mapping venue names (or ids) to event lists.

    A top-level list is also accepted; its items are then assigned to a venue by
    their ``venueId``, and items without one go to every venue.
    """

    path: Path
    _payload: object = field(default=None, init=False, repr=False)
    _loaded: bool = field(default=False, init=False, repr=False)

    async def fetch_candidates(
        self,
        venue: Venue,
        events_this_month: Sequence[CanonicalEvent],  # noqa: ARG002
    ) -> list[RawEventCandidate]:
        items = self._items_for(venue)
        log.debug("Loaded %s candidate item(s) for venue=%s from %s", len(items), venue.name, self.path)
        return parse_candidate_items(items, venue)

    def _load(self) -> object:
        if not self._loaded:
            try:
                text = self.path.read_text(encoding="utf-8")
            except OSError as exc:
                raise CandidateFileError(f"Cannot read candidates file {self.path}: {exc}") from exc
            try:
                self._payload = json.loads(strip_code_fence(text))
            except json.JSONDecodeError as exc:
                raise CandidateFileError(f"Candidates file {self.path} is not JSON: {exc}") from exc
            self._loaded = True
        return self._payload

    def _items_for(self, venue: Venue) -> list[object]:
        payload = self._load()
        if isinstance(payload, Mapping):
            mapping = cast("Mapping[str, object]", payload)
            items = mapping.get(venue.name, mapping.get(str(venue.id), []))
            if not isinstance(items, list):
                raise CandidateFileError(
                    f"Candidates for venue {venue.name!r} in {self.path} must be a list"
                )
            return cast("list[object]", items)
        if isinstance(payload, list):
            venue_id = str(venue.id)
            return [
                item
                for item in cast("list[object]", payload)
                if not isinstance(item, Mapping)
                or cast("Mapping[str, object]", item).get("venueId", venue_id) == venue_id
            ]
        raise CandidateFileError(f"Candidates file {self.path} must hold an object or a list")


__all__ = ["CandidateFileError", "JsonFileCandidateSource"]
