"""Ingestion of extracted candidates into a venue's canonical calendar."""

from __future__ import annotations

from .pipeline import ReconciliationPipeline, VenueReport
from .validation import ValidatedCandidate, reroute_to_various, validate_candidate

__all__ = [
    "ReconciliationPipeline",
    "ValidatedCandidate",
    "VenueReport",
    "reroute_to_various",
    "validate_candidate",
]
