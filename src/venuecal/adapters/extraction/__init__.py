"""Candidate sources backed by the extraction service or local files."""

from __future__ import annotations

from .client import ExtractionRequestRejectedError, ExtractionServiceError, HttpCandidateSource
from .files import CandidateFileError, JsonFileCandidateSource
from .schema import ExtractionRequest, ExtractionResponse, strip_code_fence

__all__ = [
    "CandidateFileError",
    "ExtractionRequest",
    "ExtractionRequestRejectedError",
    "ExtractionResponse",
    "ExtractionServiceError",
    "HttpCandidateSource",
    "JsonFileCandidateSource",
    "strip_code_fence",
]
