"""Keyed debounce and concurrency governor for outbound requests."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

RequestFactory = Callable[[], Awaitable[Any]]


@dataclass
class _PendingBatch:
    factory: RequestFactory
    debounce: float
    waiters: list[asyncio.Future] = field(default_factory=list)
    timer: asyncio.TimerHandle | None = None


class RateLimiter:
    """Collapse bursts per key and cap the requests in flight.

    Calls submitted under the same key inside the debounce window collapse into
    one execution of the most recent factory and every caller receives its
    result. Executions of one key run in arrival order and are spaced by
    ``min_interval``. When ``max_concurrent`` requests are already running the
    execution is deferred, never dropped.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        max_concurrent: int = 3,
        default_debounce: float = 0.5,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.min_interval = min_interval
        self.max_concurrent = max_concurrent
        self.default_debounce = default_debounce
        self._clock = clock
        self._sleep = sleep
        self._pending: dict[str, _PendingBatch] = {}
        self._last_request: dict[str, float] = {}
        self._chains: dict[str, asyncio.Task] = {}
        self._active = 0
        self.executions = 0

    @property
    def active_requests(self) -> int:
        return self._active

    async def submit(
        self, key: str, factory: RequestFactory, debounce: float | None = None
    ) -> Any:
        """Schedule ``factory`` under ``key`` and wait for the shared result."""

        loop = asyncio.get_running_loop()
        delay = self.default_debounce if debounce is None else debounce
        waiter: asyncio.Future = loop.create_future()

        batch = self._pending.get(key)
        if batch is None:
            batch = _PendingBatch(factory=factory, debounce=delay)
            self._pending[key] = batch
        else:
            batch.factory = factory
            batch.debounce = delay
            if batch.timer is not None:
                batch.timer.cancel()
        batch.waiters.append(waiter)
        batch.timer = loop.call_later(delay, self._flush, key, batch)
        return await waiter

    def can_make_request(self, key: str) -> bool:
        return self.time_until_next_request(key) <= 0

    def time_until_next_request(self, key: str) -> float:
        last = self._last_request.get(key)
        if last is None:
            return 0.0
        return max(0.0, self.min_interval - (self._clock() - last))

    def status(self) -> dict[str, Any]:
        return {
            "active_requests": self._active,
            "queued_keys": sorted(self._pending),
            "last_request_times": dict(self._last_request),
        }

    def clear(self, key: str) -> None:
        """Forget ``key``; callers still waiting on its debounce are cancelled."""

        batch = self._pending.pop(key, None)
        if batch is not None:
            self._cancel_batch(batch)
        self._last_request.pop(key, None)

    def clear_all(self) -> None:
        for key in list(self._pending):
            self.clear(key)
        self._last_request.clear()

    def cleanup(self, max_age: float = 300.0) -> int:
        """Drop bookkeeping for keys idle longer than ``max_age`` seconds."""

        now = self._clock()
        stale = [
            key
            for key, last in self._last_request.items()
            if now - last > max_age and key not in self._pending
        ]
        for key in stale:
            del self._last_request[key]
        return len(stale)

    def _flush(self, key: str, batch: _PendingBatch) -> None:
        if self._pending.get(key) is batch:
            del self._pending[key]
        previous = self._chains.get(key)
        task = asyncio.get_running_loop().create_task(self._execute(key, batch, previous))
        self._chains[key] = task
        task.add_done_callback(lambda done: self._release_chain(key, done))

    def _release_chain(self, key: str, task: asyncio.Task) -> None:
        if self._chains.get(key) is task:
            del self._chains[key]

    async def _execute(
        self, key: str, batch: _PendingBatch, previous: asyncio.Task | None
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        wait = self.time_until_next_request(key)
        if wait > 0:
            logger.debug("Rate limiting %s for %.2fs", key, wait)
            await self._sleep(wait)

        while self._active >= self.max_concurrent:
            defer = batch.debounce * 2 or self.min_interval or 0.01
            logger.debug(
                "%s requests in flight; deferring %s by %.2fs", self._active, key, defer
            )
            await self._sleep(defer)

        self._active += 1
        self.executions += 1
        self._last_request[key] = self._clock()
        try:
            result = await batch.factory()
        except Exception as exc:
            for waiter in batch.waiters:
                if not waiter.done():
                    waiter.set_exception(exc)
        else:
            for waiter in batch.waiters:
                if not waiter.done():
                    waiter.set_result(result)
        finally:
            self._active -= 1

    @staticmethod
    def _cancel_batch(batch: _PendingBatch) -> None:
        if batch.timer is not None:
            batch.timer.cancel()
        for waiter in batch.waiters:
            if not waiter.done():
                waiter.cancel()


__all__ = ["RateLimiter"]
