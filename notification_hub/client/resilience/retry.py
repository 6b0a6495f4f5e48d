"""Retry with status-specific backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import RETRYABLE_STATUS_CODES, ApiRequestError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMITED_STATUS = 429


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to wait before repeating a failed request.

    Rate limited answers back off much longer than network failures or
    gateway errors.
    """

    max_retries: int = 2
    rate_limited_delays: tuple[float, ...] = (5.0, 15.0)
    rate_limited_fallback: float = 30.0
    default_delays: tuple[float, ...] = (2.0, 4.0)
    default_fallback: float = 8.0
    retryable_statuses: frozenset[int] = RETRYABLE_STATUS_CODES

    def should_retry(self, error: ApiRequestError, attempt: int) -> bool:
        return attempt < self.max_retries and error.status_code in self.retryable_statuses

    def delay_for(self, error: ApiRequestError, attempt: int) -> float:
        if error.status_code == RATE_LIMITED_STATUS:
            delays, fallback = self.rate_limited_delays, self.rate_limited_fallback
        else:
            delays, fallback = self.default_delays, self.default_fallback
        return delays[attempt] if attempt < len(delays) else fallback


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    on_error: Callable[[ApiRequestError, int], None] | None = None,
) -> T:
    """Await ``operation`` and repeat it while ``policy`` allows.

    ``on_error`` sees every failed attempt with its zero-based index.
    """

    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        try:
            return await operation()
        except ApiRequestError as error:
            if on_error is not None:
                on_error(error, attempt)
            if not policy.should_retry(error, attempt):
                raise
            delay = policy.delay_for(error, attempt)
            logger.warning(
                "Request failed with status %s; retry %s/%s in %.1fs",
                error.status_code,
                attempt + 1,
                policy.max_retries,
                delay,
            )
            await sleep(delay)
            attempt += 1


__all__ = ["RetryPolicy", "run_with_retry"]
