"""Error taxonomy for candidate reconciliation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from venuecal.resilience import CircuitOpenError, NonRetryableError, TransientError

if TYPE_CHECKING:
    from uuid import UUID


class ReconciliationError(Exception):
    """Base class for failures raised while reconciling candidates."""


class CandidateValidationError(ReconciliationError, NonRetryableError):
    """Raised when a raw candidate is missing required fields or is malformed."""

    def __init__(self, message: str, *, reroutable: bool = False) -> None:
        super().__init__(message)
        # An event title without a performer can still be kept under "Various".
        self.reroutable = reroutable


class DateParseError(ReconciliationError, NonRetryableError, ValueError):
    """Raised when no supported format can interpret a date string."""

    def __init__(self, raw: str) -> None:
        super().__init__(f"Unable to parse date: {raw!r}")
        self.raw = raw


class DuplicateKeyError(ReconciliationError, NonRetryableError):
    """Raised by a store when an event already occupies ``(venue_id, start_at)``."""

    def __init__(self, venue_id: UUID, start_at: object) -> None:
        super().__init__(f"Event already exists for venue {venue_id} at {start_at}")
        self.venue_id = venue_id
        self.start_at = start_at


__all__ = [
    "CandidateValidationError",
    "CircuitOpenError",
    "DateParseError",
    "DuplicateKeyError",
    "ReconciliationError",
    "TransientError",
]
