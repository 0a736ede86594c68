"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .extraction import ExtractionConfig, get_extraction_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, level_from_name
from .reconciliation import ReconciliationConfig, get_reconciliation_config, parse_time_of_day
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "ExtractionConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_extraction_config",
    "get_reconciliation_config",
    "get_storage_config",
    "level_from_name",
    "parse_time_of_day",
    "require_env_vars",
]
