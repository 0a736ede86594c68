"""Extraction service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_EXTRACTION_PATH = "extract"
# Inference calls are slow; the page has to be rendered and read first.
EXTRACTION_TIMEOUT_SECONDS = 180.0


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    """Where and how to request candidate events for a venue."""

    resilience: ResilienceConfig
    path: str = DEFAULT_EXTRACTION_PATH


def get_extraction_config(*, resilience: ResilienceConfig | None = None) -> ExtractionConfig:
    values = require_env_vars(("VENUECAL_EXTRACTION_URL",))
    api_key = optional_env_var("VENUECAL_EXTRACTION_API_KEY")
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
    return ExtractionConfig(
        resilience=resilience
        or ResilienceConfig(
            name="extraction",
            base_url=values["VENUECAL_EXTRACTION_URL"],
            timeout_seconds=EXTRACTION_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=2),
            ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
            default_headers=headers,
        ),
        path=optional_env_var("VENUECAL_EXTRACTION_PATH") or DEFAULT_EXTRACTION_PATH,
    )
