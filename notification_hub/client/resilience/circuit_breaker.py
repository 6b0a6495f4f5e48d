"""Client-wide circuit breaker guarding the notification API."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable

from .errors import service_unavailable

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class CircuitBreaker:
    """Stop calling the API after repeated failures until a cooldown passes.

    Successes only decrement the failure counter, so a lone success among
    intermittent failures does not fully re-arm the breaker.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_seconds: float = 30.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_seconds = recovery_seconds
        self._clock = clock
        self.failure_count = 0
        self.last_failure_at: float | None = None

    @property
    def state(self) -> CircuitState:
        return CircuitState.OPEN if self.is_open() else CircuitState.CLOSED

    def is_open(self) -> bool:
        if self.failure_count < self.failure_threshold:
            return False
        if self.time_until_recovery() <= 0:
            self.reset()
            return False
        return True

    def check(self) -> None:
        """Raise the synthesised 503 error while the breaker is open."""

        if self.is_open():
            logger.warning(
                "Request blocked by circuit breaker; recovery in %.0fs",
                self.time_until_recovery(),
            )
            raise service_unavailable()

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_at = self._clock()
        if self.failure_count == self.failure_threshold:
            logger.warning(
                "Circuit breaker opened after %s failures; blocking requests for %ss",
                self.failure_count,
                self.recovery_seconds,
            )

    def record_success(self) -> None:
        self.failure_count = max(0, self.failure_count - 1)

    def reset(self) -> None:
        if self.failure_count:
            logger.info("Circuit breaker reset")
        self.failure_count = 0
        self.last_failure_at = None

    def time_until_recovery(self) -> float:
        if self.last_failure_at is None:
            return 0.0
        elapsed = self._clock() - self.last_failure_at
        return max(0.0, self.recovery_seconds - elapsed)

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "time_until_recovery": self.time_until_recovery(),
        }


__all__ = ["CircuitBreaker", "CircuitState"]
