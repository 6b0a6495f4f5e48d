"""Client view of the user's notifications kept in step with the server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from .api import NotificationApiClient
from .config import ClientSettings
from .resilience import ApiRequestError
from .storage import (
    BoundedHistoryCache,
    CachedNotification,
    JsonFileStorage,
    MemoryStorage,
    extract_server_id,
)
from .toasts import ToastQueue

logger = logging.getLogger(__name__)

RelevanceCheck = Callable[[Mapping[str, Any]], bool]


def relevant_to_user(
    user_id: int, can_receive: Callable[[int], bool] | None = None
) -> RelevanceCheck:
    """Build a push filter for ``user_id``.

    Pushes addressed to another user are dropped. Pushes tied to a contract are
    kept only when ``can_receive(contract_id)`` allows it; notifications without
    a contract always pass.
    """

    def check(payload: Mapping[str, Any]) -> bool:
        recipient = payload.get("user_id")
        if recipient is not None and int(recipient) != user_id:
            return False
        contract_id = (payload.get("metadata") or {}).get("contract_id")
        if contract_id is None or can_receive is None:
            return True
        return bool(can_receive(int(contract_id)))

    return check


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class NotificationSync:
    """Ordered history, unread counter and pagination for one signed-in user.

    Read-state changes are applied locally right away and acknowledged in the
    background; a failed acknowledgement is logged and the local state is kept
    until the next refresh.
    """

    def __init__(
        self,
        api: NotificationApiClient,
        cache: BoundedHistoryCache,
        toasts: ToastQueue | None = None,
        *,
        init_delay: float = 1.0,
        unread_delay: float = 2.0,
        is_relevant: RelevanceCheck | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.api = api
        self.cache = cache
        self.toasts = toasts or ToastQueue()
        self.init_delay = init_delay
        self.unread_delay = unread_delay
        self.is_relevant = is_relevant
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()

        self.history: list[CachedNotification] = cache.load()
        stored_count = cache.load_unread_count()
        self.unread_count = (
            stored_count if stored_count is not None else self._count_unread()
        )
        self.current_page = 1
        self.total_pages = 1
        self.loading = False
        self.initialized = False

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings | None = None,
        *,
        is_relevant: RelevanceCheck | None = None,
    ) -> "NotificationSync":
        """Wire the API client, the history cache and the toasts from ``settings``."""

        settings = settings or ClientSettings()
        storage = (
            JsonFileStorage(settings.cache_path) if settings.cache_path else MemoryStorage()
        )
        return cls(
            NotificationApiClient.from_settings(settings),
            BoundedHistoryCache(storage, capacity=settings.history_capacity),
            ToastQueue(
                settings.toast_capacity,
                default_duration=settings.toast_duration_seconds,
                error_duration=settings.toast_error_duration_seconds,
                high_priority_duration=settings.toast_high_priority_duration_seconds,
            ),
            init_delay=settings.init_delay_seconds,
            unread_delay=settings.unread_delay_seconds,
            is_relevant=is_relevant,
        )

    async def fetch(self, page: int = 1) -> bool:
        """Load ``page``; page 1 replaces the history, later pages append."""

        if self.loading:
            logger.debug("Notifications already loading; ignoring page %s", page)
            return False
        self.loading = True
        try:
            result = await self.api.list(page)
        except ApiRequestError as exc:
            logger.error("Could not fetch notifications page %s: %s", page, exc)
            return False
        finally:
            self.loading = False

        if page == 1:
            self.history = list(result.items)
        else:
            known = {entry.id for entry in self.history}
            self.history.extend(entry for entry in result.items if entry.id not in known)
        self.current_page = result.page
        self.total_pages = result.total_pages
        self.unread_count = self._count_unread()
        self._persist()
        return True

    async def fetch_unread_count(self) -> int | None:
        try:
            count = await self.api.unread_count()
        except ApiRequestError as exc:
            logger.error("Could not fetch unread count: %s", exc)
            return None
        self.unread_count = count
        self.cache.save_unread_count(count)
        return count

    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    async def load_more(self) -> bool:
        if not self.has_more() or self.loading:
            return False
        return await self.fetch(self.current_page + 1)

    async def refresh(self) -> None:
        self.current_page = 1
        await self.fetch(1)
        await self.fetch_unread_count()

    def mark_as_read(self, entry_id: str) -> bool:
        """Flag ``entry_id`` as read locally and acknowledge it in the background."""

        entry = next((item for item in self.history if item.id == entry_id), None)
        if entry is None:
            return False
        if not entry.is_read:
            entry.is_read = True
            entry.read_at = datetime.now(timezone.utc)
        self.unread_count = self._count_unread()
        self._persist()

        server_id = extract_server_id(entry_id)
        if server_id is not None:
            self._spawn(self._acknowledge_one(server_id))
        return True

    def mark_all_as_read(self) -> None:
        now = datetime.now(timezone.utc)
        for entry in self.history:
            if not entry.is_read:
                entry.is_read = True
                entry.read_at = now
        self.unread_count = 0
        self._persist()
        self._spawn(self._acknowledge_all())

    def clear_history(self) -> None:
        """Empty the local history and delete every notification on the server."""

        self.history = []
        self.unread_count = 0
        self._persist()
        self._spawn(self._delete_all())

    async def delete_old(self, days: int = 30) -> int | None:
        try:
            deleted = await self.api.delete_old(days)
        except ApiRequestError as exc:
            logger.error("Could not delete notifications older than %s days: %s", days, exc)
            return None
        await self.refresh()
        return deleted

    def clear_old_entries(self, days: int = 7) -> int:
        """Drop local entries older than ``days``; the server keeps them."""

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        before = len(self.history)
        self.history = [
            entry
            for entry in self.history
            if entry.created_at is None or _as_aware(entry.created_at) > cutoff
        ]
        self.unread_count = self._count_unread()
        self._persist()
        return before - len(self.history)

    def reset(self) -> None:
        """Forget everything about the current session, e.g. on logout."""

        for task in list(self._tasks):
            task.cancel()
        self.initialized = False
        self.loading = False
        self.current_page = 1
        self.total_pages = 1
        self.history = []
        self.unread_count = 0
        self.toasts.clear()
        self.cache.clear()

    def initialize(self) -> bool:
        """Schedule the first loads once per session; later calls do nothing."""

        if self.initialized:
            logger.debug("Notifications already initialized")
            return False
        self.initialized = True
        self._spawn(self._after(self.init_delay, self.fetch(1)))
        self._spawn(self._after(self.unread_delay, self.fetch_unread_count()))
        return True

    def handle_push(self, payload: Mapping[str, Any]) -> CachedNotification | None:
        """Add a pushed notification to the head of the history and toast it."""

        if self.is_relevant is not None and not self.is_relevant(payload):
            logger.debug("Ignoring push not relevant to this user")
            return None
        try:
            entry = CachedNotification.from_api(payload)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed notification push")
            return None

        rest = [item for item in self.history if item.id != entry.id]
        self.history = ([entry] + rest)[: self.cache.capacity]
        self.unread_count = self._count_unread()
        self._persist()
        self.toasts.show_notification(entry)
        self._spawn(self.fetch_unread_count())
        return entry

    async def drain(self) -> None:
        """Wait for every background task spawned so far, including follow-ups."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _after(self, delay: float, operation: Coroutine[Any, Any, Any]) -> Any:
        try:
            if delay:
                await self._sleep(delay)
        except BaseException:
            operation.close()
            raise
        return await operation

    async def _acknowledge_one(self, server_id: int) -> None:
        try:
            await self.api.mark_as_read(server_id)
        except ApiRequestError as exc:
            logger.warning("Server did not acknowledge notification %s: %s", server_id, exc)
            return
        await self.fetch_unread_count()

    async def _acknowledge_all(self) -> None:
        try:
            await self.api.mark_all_as_read()
        except ApiRequestError as exc:
            logger.warning("Server did not acknowledge read-all: %s", exc)
            return
        await self.fetch_unread_count()

    async def _delete_all(self) -> None:
        try:
            await self.api.delete_all()
        except ApiRequestError as exc:
            logger.error("Could not delete notifications on the server: %s", exc)
            return
        await self.fetch_unread_count()

    def _spawn(self, operation: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            operation.close()
            logger.debug("No running event loop; background sync skipped")
            return None
        task = loop.create_task(operation)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _count_unread(self) -> int:
        return sum(1 for entry in self.history if not entry.is_read)

    def _persist(self) -> None:
        try:
            self.cache.save(self.history)
            self.cache.save_unread_count(self.unread_count)
        except OSError:
            logger.exception("Could not persist notification history")


__all__ = ["NotificationSync", "RelevanceCheck", "relevant_to_user"]
