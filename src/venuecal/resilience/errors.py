"""Failure categories understood by the resilient executor."""

from __future__ import annotations


class NonRetryableError(Exception):
    """Marker base for failures that repeating the call cannot fix."""


class TransientError(RuntimeError):
    """Network, timeout or rate-limit failure that may succeed on a later attempt."""


class CircuitOpenError(RuntimeError):
    """Raised instead of calling an operation whose circuit breaker is open."""

    def __init__(self, operation_name: str, *, breaker_key: str, retry_after: float) -> None:
        super().__init__(
            f"Circuit open for {operation_name!r} (breaker={breaker_key}); "
            f"retry in {retry_after:.1f}s"
        )
        self.operation_name = operation_name
        self.breaker_key = breaker_key
        self.retry_after = retry_after
