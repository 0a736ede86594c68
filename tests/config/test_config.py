from __future__ import annotations

from datetime import time
from pathlib import Path

import pytest

from venuecal.config import (
    ConfigurationError,
    MissingConfigurationError,
    ReconciliationConfig,
    get_database_config,
    get_extraction_config,
    get_reconciliation_config,
    get_storage_config,
    level_from_name,
    parse_time_of_day,
    require_env_vars,
)
from venuecal.resilience import BreakerScope

_RECONCILIATION_VARS = (
    "VENUECAL_TARGET_TIMEZONE",
    "VENUECAL_SIMILARITY_THRESHOLD",
    "VENUECAL_MATCH_WINDOW_HOURS",
    "VENUECAL_DEFAULT_EVENT_DURATION_HOURS",
    "VENUECAL_STALENESS_DAYS",
    "VENUECAL_DEFAULT_EVENT_TIME_OF_DAY",
    "VENUECAL_VENUE_PAUSE_SECONDS",
    "VENUECAL_APPROVE_EVENTS",
    "VENUECAL_BREAKER_SCOPE",
    "VENUECAL_MAX_RETRIES",
    "VENUECAL_BASE_DELAY_MS",
    "VENUECAL_CIRCUIT_BREAKER_THRESHOLD",
    "VENUECAL_CIRCUIT_BREAKER_TIMEOUT_MS",
    "VENUECAL_CALL_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _RECONCILIATION_VARS:
        monkeypatch.delenv(name, raising=False)


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_reports_blank_and_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "   ")
    monkeypatch.delenv("MISSING_VAR", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)


def test_reconciliation_defaults() -> None:
    config = get_reconciliation_config()

    assert config == ReconciliationConfig()
    assert config.target_timezone == "America/Toronto"
    assert config.similarity_threshold == 0.8
    assert config.match_window_hours == 4
    assert config.default_event_duration_hours == 2
    assert config.staleness_days == 3
    assert config.default_event_time_of_day == time(19, 0)
    assert config.executor.max_retries == 3
    assert config.executor.base_delay_ms == 1000
    assert config.executor.circuit_breaker_threshold == 5
    assert config.executor.circuit_breaker_timeout_ms == 60_000
    assert config.executor.timeout_seconds is None


def test_reconciliation_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VENUECAL_TARGET_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("VENUECAL_SIMILARITY_THRESHOLD", "0.9")
    monkeypatch.setenv("VENUECAL_DEFAULT_EVENT_TIME_OF_DAY", "20:30")
    monkeypatch.setenv("VENUECAL_APPROVE_EVENTS", "no")
    monkeypatch.setenv("VENUECAL_BREAKER_SCOPE", "PER_OPERATION")
    monkeypatch.setenv("VENUECAL_MAX_RETRIES", "5")
    monkeypatch.setenv("VENUECAL_CALL_TIMEOUT_SECONDS", "12.5")

    config = get_reconciliation_config()

    assert config.target_timezone == "Europe/Berlin"
    assert config.similarity_threshold == 0.9
    assert config.default_event_time_of_day == time(20, 30)
    assert not config.approve_new_events
    assert config.breaker_scope is BreakerScope.PER_OPERATION
    assert config.executor.max_retries == 5
    assert config.executor.timeout_seconds == 12.5


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("VENUECAL_TARGET_TIMEZONE", "Nowhere/Special"),
        ("VENUECAL_SIMILARITY_THRESHOLD", "1.5"),
        ("VENUECAL_STALENESS_DAYS", "-1"),
        ("VENUECAL_MAX_RETRIES", "zero"),
        ("VENUECAL_MAX_RETRIES", "0"),
        ("VENUECAL_APPROVE_EVENTS", "maybe"),
        ("VENUECAL_BREAKER_SCOPE", "per_planet"),
        ("VENUECAL_DEFAULT_EVENT_TIME_OF_DAY", "7pm"),
    ],
)
def test_invalid_reconciliation_values_raise(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_reconciliation_config()


def test_parse_time_of_day() -> None:
    assert parse_time_of_day(" 18:45 ") == time(18, 45)


def test_extraction_config_requires_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("VENUECAL_EXTRACTION_URL", raising=False)

    with pytest.raises(MissingConfigurationError):
        get_extraction_config()


def test_extraction_config_uses_bearer_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VENUECAL_EXTRACTION_URL", "https://extract.example/api/")
    monkeypatch.setenv("VENUECAL_EXTRACTION_API_KEY", "secret")
    monkeypatch.delenv("VENUECAL_EXTRACTION_PATH", raising=False)

    config = get_extraction_config()

    assert config.path == "extract"
    assert config.resilience.base_url == "https://extract.example/api/"
    assert config.resilience.default_headers == {"Authorization": "Bearer secret"}


def test_storage_config_uses_env_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VENUECAL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("DATABASE_URI", raising=False)

    storage = get_storage_config()

    assert storage.database_path() == (tmp_path / "data" / "venuecal.db").resolve()
    assert get_database_config(storage=storage).uri.endswith("venuecal.db")


def test_database_uri_env_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")

    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"


def test_level_from_name() -> None:
    assert level_from_name("debug") == 10
    assert level_from_name(None) == 20
    assert level_from_name("nonsense", default=30) == 30
