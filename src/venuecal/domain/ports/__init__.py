"""Domain ports."""

from __future__ import annotations

from .extraction import CandidateSource
from .persistence import EventStore

__all__ = ["CandidateSource", "EventStore"]
