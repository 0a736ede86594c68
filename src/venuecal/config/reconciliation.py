"""Reconciliation engine settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from venuecal.resilience import BreakerScope, ExecutorConfig

from .env import env_bool, env_float, env_int, optional_env_var
from .errors import ConfigurationError

DEFAULT_TARGET_TIMEZONE = "America/Toronto"
DEFAULT_EVENT_TIME_OF_DAY = time(19, 0)


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    target_timezone: str = DEFAULT_TARGET_TIMEZONE
    similarity_threshold: float = 0.8
    match_window_hours: float = 4.0
    default_event_duration_hours: float = 2.0
    staleness_days: float = 3.0
    default_event_time_of_day: time = DEFAULT_EVENT_TIME_OF_DAY
    venue_pause_seconds: float = 5.0
    approve_new_events: bool = True
    breaker_scope: BreakerScope = BreakerScope.PER_VENUE
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)

    def __post_init__(self) -> None:
        try:
            ZoneInfo(self.target_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone: {self.target_timezone!r}") from exc
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ConfigurationError("similarity_threshold must be between 0 and 1")
        for name in (
            "match_window_hours",
            "default_event_duration_hours",
            "staleness_days",
            "venue_pause_seconds",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be non-negative")


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` (24h) into a ``time``."""

    try:
        return time.fromisoformat(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid time of day: {value!r} (expected HH:MM)") from exc


def _breaker_scope(value: str | None) -> BreakerScope:
    if value is None:
        return BreakerScope.PER_VENUE
    try:
        return BreakerScope(value.lower())
    except ValueError as exc:
        choices = ", ".join(scope.value for scope in BreakerScope)
        raise ConfigurationError(f"Unknown breaker scope {value!r}; use one of {choices}") from exc


def get_reconciliation_config() -> ReconciliationConfig:
    time_of_day = optional_env_var("VENUECAL_DEFAULT_EVENT_TIME_OF_DAY")
    timeout = optional_env_var("VENUECAL_CALL_TIMEOUT_SECONDS")
    try:
        executor = ExecutorConfig(
            max_retries=env_int("VENUECAL_MAX_RETRIES", 3),
            base_delay_ms=env_int("VENUECAL_BASE_DELAY_MS", 1000),
            circuit_breaker_threshold=env_int("VENUECAL_CIRCUIT_BREAKER_THRESHOLD", 5),
            circuit_breaker_timeout_ms=env_int("VENUECAL_CIRCUIT_BREAKER_TIMEOUT_MS", 60_000),
            timeout_seconds=env_float("VENUECAL_CALL_TIMEOUT_SECONDS", 0.0) if timeout else None,
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    return ReconciliationConfig(
        target_timezone=optional_env_var("VENUECAL_TARGET_TIMEZONE") or DEFAULT_TARGET_TIMEZONE,
        similarity_threshold=env_float("VENUECAL_SIMILARITY_THRESHOLD", 0.8),
        match_window_hours=env_float("VENUECAL_MATCH_WINDOW_HOURS", 4.0),
        default_event_duration_hours=env_float("VENUECAL_DEFAULT_EVENT_DURATION_HOURS", 2.0),
        staleness_days=env_float("VENUECAL_STALENESS_DAYS", 3.0),
        default_event_time_of_day=(
            parse_time_of_day(time_of_day) if time_of_day else DEFAULT_EVENT_TIME_OF_DAY
        ),
        venue_pause_seconds=env_float("VENUECAL_VENUE_PAUSE_SECONDS", 5.0),
        approve_new_events=env_bool("VENUECAL_APPROVE_EVENTS", True),  # noqa: FBT003
        breaker_scope=_breaker_scope(optional_env_var("VENUECAL_BREAKER_SCOPE")),
        executor=executor,
    )
