"""HTTP client for the candidate extraction service."""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from venuecal.adapters.http_resilience import ResilientClient
from venuecal.config.extraction import ExtractionConfig, get_extraction_config
from venuecal.resilience import NonRetryableError, TransientError

from .schema import ExtractionRequest, decode_response_text, parse_candidate_items

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from venuecal.config.http_resilience import ResilienceConfig
    from venuecal.domain.model import CanonicalEvent, RawEventCandidate, Venue

log = getLogger(__name__)


class ExtractionServiceError(TransientError):
    """Raised when the extraction service fails in a way a later attempt may fix."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ExtractionRequestRejectedError(NonRetryableError, RuntimeError):
    """Raised when the extraction service refuses the request itself."""

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class HttpCandidateSource:
    """Asks the extraction service for a venue's upcoming events.

    One client, and with it one rate limiter, serves every venue of a run; use
    the source as an async context manager or call ``aclose`` when done.
    """

    config: ExtractionConfig = field(default_factory=get_extraction_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> HttpCandidateSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _client_for_run(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    async def fetch_candidates(
        self,
        venue: Venue,
        events_this_month: Sequence[CanonicalEvent],
    ) -> list[RawEventCandidate]:
        request = ExtractionRequest.for_venue(venue, events_this_month)
        client = self._client_for_run()
        try:
            response = await client.post(self.config.path, json=request.to_json())
        except httpx.HTTPError as exc:
            raise ExtractionServiceError(
                f"Extraction request for venue {venue.name!r} failed: {exc}"
            ) from exc

        _raise_for_status(response, venue)
        try:
            payload = decode_response_text(response.text)
        except ValueError as exc:
            raise ExtractionServiceError(
                f"Extraction service returned malformed JSON for venue {venue.name!r}: {exc}",
                status_code=response.status_code,
            ) from exc

        candidates = parse_candidate_items(payload.events, venue)
        log.info(
            "Extraction returned %s candidate(s) for venue=%s (%s item(s) received)",
            len(candidates),
            venue.name,
            len(payload.events),
        )
        return candidates


def _raise_for_status(response: httpx.Response, venue: Venue) -> None:
    status = response.status_code
    if status < HTTPStatus.BAD_REQUEST:
        return
    message = f"Extraction service answered {status} for venue {venue.name!r}"
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR or status in {
        HTTPStatus.REQUEST_TIMEOUT,
        HTTPStatus.TOO_MANY_REQUESTS,
    }:
        raise ExtractionServiceError(message, status_code=status)
    raise ExtractionRequestRejectedError(message, status_code=status)


__all__ = [
    "ExtractionRequestRejectedError",
    "ExtractionServiceError",
    "HttpCandidateSource",
]
