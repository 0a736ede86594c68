"""Fuzzy duplicate and conflict detection against stored events.

Names are compared after normalization (accents dropped, case folded, everything
except letters and digits removed) using a length-normalized Levenshtein
similarity. An existing event is scored by the better of its artist name and its
event title.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .time_windows import TimeWindow

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from .model import CanonicalEvent, NormalizedEvent

DEFAULT_SIMILARITY_THRESHOLD: Final[float] = 0.8
DEFAULT_MATCH_WINDOW_HOURS: Final[float] = 4.0


def normalize_name(value: str | None) -> str:
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(
        char for char in decomposed.casefold() if char.isalnum() and not unicodedata.combining(char)
    )


def levenshtein(left: str, right: str) -> int:
    if left == right:
        return 0
    if len(left) < len(right):
        left, right = right, left
    if not right:
        return len(left)

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (left_char != right_char),
                )
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    """``1 - distance / longest`` on already-normalized names; 0.0 when both are empty."""

    longest = max(len(left), len(right))
    if longest == 0:
        return 0.0
    return 1.0 - levenshtein(left, right) / longest


def score(candidate_name: str, event: CanonicalEvent) -> float:
    normalized = normalize_name(candidate_name)
    return max(
        similarity(normalized, normalize_name(event.artist_name)),
        similarity(normalized, normalize_name(event.name)),
    )


def matches_prefilter(candidate_name: str, event: CanonicalEvent) -> bool:
    """Coarse containment check a store may apply before scoring."""

    needle = normalize_name(candidate_name)
    if not needle:
        return False
    return needle in normalize_name(event.artist_name) or needle in normalize_name(event.name)


class Classification(StrEnum):
    NEW = "new"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class MatchResult:
    classification: Classification
    matched_event: CanonicalEvent | None = None
    score: float = 0.0

    @classmethod
    def new(cls) -> MatchResult:
        return cls(Classification.NEW)


@dataclass(frozen=True, slots=True)
class EventMatcher:
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    window_hours: float = DEFAULT_MATCH_WINDOW_HOURS

    def match_window(self, start_at: datetime) -> TimeWindow:
        return TimeWindow.around(start_at, timedelta(hours=self.window_hours))

    def rank(
        self,
        candidate: NormalizedEvent,
        window_candidates: Iterable[CanonicalEvent],
    ) -> list[tuple[float, CanonicalEvent]]:
        """Score events in the candidate's window, best first.

        Events from another venue or outside the window are ignored, whatever
        the store returned. Ties keep the store's order.
        """

        window = self.match_window(candidate.start_at)
        scored = [
            (score(candidate.match_name, event), event)
            for event in window_candidates
            if event.venue_id == candidate.venue_id and window.contains(event.start_at)
        ]
        scored.sort(key=lambda item: item[0], reverse=True)
        return scored

    def classify(
        self,
        candidate: NormalizedEvent,
        window_candidates: Iterable[CanonicalEvent],
    ) -> MatchResult:
        duplicate: MatchResult | None = None
        conflict: MatchResult | None = None
        for match_score, event in self.rank(candidate, window_candidates):
            if match_score <= self.threshold:
                break
            if event.start_at == candidate.start_at:
                if duplicate is None:
                    duplicate = MatchResult(Classification.DUPLICATE, event, match_score)
            elif conflict is None:
                conflict = MatchResult(Classification.CONFLICT, event, match_score)
            if duplicate is not None and conflict is not None:
                break
        return duplicate or conflict or MatchResult.new()


__all__ = [
    "Classification",
    "EventMatcher",
    "MatchResult",
    "levenshtein",
    "matches_prefilter",
    "normalize_name",
    "score",
    "similarity",
]
