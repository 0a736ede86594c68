"""Retry with exponential backoff behind a circuit breaker.

Every store write, extraction request or other unreliable call goes through
``ResilientExecutor.execute``. The breaker is consulted once, when the call
starts; retries inside that call keep going even if they push the breaker open,
and the next independent call is the one that fails fast.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .breaker import BreakerRegistry
from .errors import CircuitOpenError, NonRetryableError, TransientError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = getLogger(__name__)

type Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class ExecutorConfig:
    max_retries: int = 3
    base_delay_ms: int = 1000
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout_ms: int = 60_000
    timeout_seconds: float | None = None
    non_retryable: tuple[type[BaseException], ...] = (NonRetryableError,)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be non-negative")
        if self.circuit_breaker_threshold < 1:
            raise ValueError("circuit_breaker_threshold must be at least 1")
        if self.circuit_breaker_timeout_ms < 0:
            raise ValueError("circuit_breaker_timeout_ms must be non-negative")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive when set")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""

        return self.base_delay_ms * 2 ** (attempt - 1) / 1000


class ResilientExecutor:
    """Run async operations with retries, backoff and a scoped circuit breaker."""

    def __init__(
        self,
        config: ExecutorConfig | None = None,
        *,
        breakers: BreakerRegistry | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or ExecutorConfig()
        self.breakers = breakers or BreakerRegistry()
        self._sleep = sleep

    async def execute[T](
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        config: ExecutorConfig | None = None,
        *,
        scope_key: str | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or ``max_retries`` attempts have failed.

        Raises ``CircuitOpenError`` without calling ``operation`` while the breaker
        is open. Exceptions listed in ``config.non_retryable`` propagate on the
        first occurrence and are not counted as breaker failures. Otherwise the last
        error is re-raised once attempts are exhausted.
        """

        effective = config or self.config
        key = self.breakers.key_for(operation_name, scope_key)
        breaker = self.breakers.get(
            key,
            threshold=effective.circuit_breaker_threshold,
            timeout_seconds=effective.circuit_breaker_timeout_ms / 1000,
        )
        retry_after = breaker.seconds_until_retry()
        if retry_after > 0:
            raise CircuitOpenError(operation_name, breaker_key=key, retry_after=retry_after)

        attempt = 0
        while True:
            attempt += 1
            try:
                result = await self._invoke(operation, operation_name, effective)
            except effective.non_retryable:
                raise
            except Exception as exc:
                breaker.record_failure()
                if attempt >= effective.max_retries:
                    log.error(
                        "%s failed after %s attempt(s): %s",
                        operation_name,
                        attempt,
                        exc,
                    )
                    raise
                delay = effective.delay_for(attempt)
                log.warning(
                    "%s failed on attempt %s/%s (%s); retrying in %.2fs",
                    operation_name,
                    attempt,
                    effective.max_retries,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                continue
            breaker.record_success()
            return result

    async def _invoke[T](
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        config: ExecutorConfig,
    ) -> T:
        if config.timeout_seconds is None:
            return await operation()
        try:
            async with asyncio.timeout(config.timeout_seconds):
                return await operation()
        except TimeoutError as exc:
            raise TransientError(
                f"{operation_name} timed out after {config.timeout_seconds}s"
            ) from exc
