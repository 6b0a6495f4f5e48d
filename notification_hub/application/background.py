"""In-process queue for side effects that must not block the request path."""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class WorkItem:
    """A named side effect retried until it succeeds or runs out of attempts."""

    name: str
    action: Callable[[], Any]
    attempts: int = 0
    succeeded: bool = False


class BackgroundWorkQueue:
    """Run :class:`WorkItem` objects on a worker thread with at-least-once semantics.

    Items submitted while the worker is stopped stay queued until
    :meth:`start` or :meth:`run_pending` processes them.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def submit(self, name: str, action: Callable[[], Any]) -> WorkItem:
        item = WorkItem(name=name, action=action)
        self._queue.put(item)
        logger.debug("Queued background work %s", name)
        return item

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(
                target=self._worker, name="notification-background", daemon=True
            )
            self._thread.start()
        logger.info("Background work queue started")

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the worker and run whatever is still queued in the caller's thread."""

        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            self._queue.put(_STOP)
            thread.join(timeout)
        self.run_pending()
        logger.info("Background work queue stopped")

    def run_pending(self) -> int:
        """Process every queued item synchronously and return how many ran."""

        processed = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return processed
            try:
                if item is _STOP:
                    continue
                self.execute(item)
                processed += 1
            finally:
                self._queue.task_done()

    def execute(self, item: WorkItem) -> bool:
        while item.attempts < self.max_attempts:
            item.attempts += 1
            try:
                item.action()
            except Exception:
                if item.attempts >= self.max_attempts:
                    logger.exception(
                        "Background work %s failed after %s attempts",
                        item.name,
                        item.attempts,
                    )
                    return False
                logger.warning(
                    "Background work %s failed on attempt %s; retrying",
                    item.name,
                    item.attempts,
                )
                if self.retry_delay:
                    self._sleep(self.retry_delay)
            else:
                item.succeeded = True
                return True
        return False

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.execute(item)
            finally:
                self._queue.task_done()


__all__ = ["BackgroundWorkQueue", "WorkItem"]
