"""Circuit breaker state and the registry that decides its scope.

The breaker state is a plain value (``BreakerState``) so callers choose how far it
is shared: one breaker for everything, one per operation name, or one per venue.
State transitions happen without suspending, so a breaker can be shared between
tasks on the same event loop.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

type MonotonicClock = Callable[[], float]


class BreakerScope(StrEnum):
    """How far one breaker's failure count is shared."""

    GLOBAL = "global"
    PER_OPERATION = "per_operation"
    PER_VENUE = "per_venue"


@dataclass(slots=True)
class BreakerState:
    failure_count: int = 0
    last_failure_at: float | None = None
    is_open: bool = False


@dataclass(slots=True)
class CircuitBreaker:
    """Consecutive-failure breaker with an optimistic re-close after the cooldown."""

    key: str
    threshold: int
    timeout_seconds: float
    clock: MonotonicClock = time.monotonic
    state: BreakerState = field(default_factory=BreakerState)

    def seconds_until_retry(self) -> float:
        """Return the remaining cooldown, re-closing the breaker once it has elapsed.

        Zero means calls may proceed.
        """

        if not self.state.is_open:
            return 0.0
        last_failure = self.state.last_failure_at
        elapsed = self.clock() - last_failure if last_failure is not None else self.timeout_seconds
        if elapsed >= self.timeout_seconds:
            log.info("Circuit %s cooled down after %.1fs, closing", self.key, elapsed)
            self.reset()
            return 0.0
        return self.timeout_seconds - elapsed

    def record_success(self) -> None:
        if self.state.failure_count:
            log.debug("Circuit %s: success after %s failures", self.key, self.state.failure_count)
        self.reset()

    def record_failure(self) -> None:
        self.state.failure_count += 1
        self.state.last_failure_at = self.clock()
        if not self.state.is_open and self.state.failure_count >= self.threshold:
            self.state.is_open = True
            log.warning(
                "Circuit %s opened after %s consecutive failures",
                self.key,
                self.state.failure_count,
            )

    def reset(self) -> None:
        self.state.failure_count = 0
        self.state.is_open = False


@dataclass(slots=True)
class BreakerRegistry:
    """Hands out breakers keyed according to ``scope``."""

    scope: BreakerScope = BreakerScope.GLOBAL
    clock: MonotonicClock = time.monotonic
    _breakers: dict[str, CircuitBreaker] = field(default_factory=dict)

    def key_for(self, operation_name: str, scope_key: str | None = None) -> str:
        if self.scope is BreakerScope.PER_OPERATION:
            return operation_name
        if self.scope is BreakerScope.PER_VENUE and scope_key is not None:
            return f"venue:{scope_key}"
        return "global"

    def get(
        self,
        key: str,
        *,
        threshold: int,
        timeout_seconds: float,
    ) -> CircuitBreaker:
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = CircuitBreaker(
                key=key,
                threshold=threshold,
                timeout_seconds=timeout_seconds,
                clock=self.clock,
            )
            self._breakers[key] = breaker
        else:
            breaker.threshold = threshold
            breaker.timeout_seconds = timeout_seconds
        return breaker

    def state_of(self, key: str) -> BreakerState | None:
        breaker = self._breakers.get(key)
        return breaker.state if breaker is not None else None
