"""Retry, backoff and circuit breaking for unreliable async calls."""

from __future__ import annotations

from .breaker import BreakerRegistry, BreakerScope, BreakerState, CircuitBreaker
from .errors import CircuitOpenError, NonRetryableError, TransientError
from .executor import ExecutorConfig, ResilientExecutor

__all__ = [
    "BreakerRegistry",
    "BreakerScope",
    "BreakerState",
    "CircuitBreaker",
    "CircuitOpenError",
    "ExecutorConfig",
    "NonRetryableError",
    "ResilientExecutor",
    "TransientError",
]
