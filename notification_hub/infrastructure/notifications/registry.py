"""Lifecycle-scoped map of online users to their live push connection."""

from __future__ import annotations

import logging
import threading
from typing import Any, Protocol


logger = logging.getLogger(__name__)


class ChannelHandle(Protocol):
    """Anything able to push a JSON message, such as a FastAPI ``WebSocket``."""

    async def send_json(self, data: Any) -> None: ...


class LiveChannelRegistry:
    """Keep at most one live handle per user; the last registration wins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_user: dict[int, ChannelHandle] = {}

    def register(self, user_id: int, handle: ChannelHandle) -> ChannelHandle | None:
        """Bind ``handle`` to ``user_id`` and return the handle it replaced."""

        with self._lock:
            previous = self._by_user.get(user_id)
            self._by_user[user_id] = handle
        if previous is not None and previous is not handle:
            logger.info("Live channel for user %s replaced by a newer registration", user_id)
        return previous

    def unregister(self, handle: ChannelHandle) -> int | None:
        """Drop the mapping that still points at ``handle``.

        A handle already superseded by a newer registration leaves the map
        untouched.
        """

        with self._lock:
            for user_id, current in self._by_user.items():
                if current is handle:
                    del self._by_user[user_id]
                    return user_id
        return None

    def lookup(self, user_id: int) -> ChannelHandle | None:
        with self._lock:
            return self._by_user.get(user_id)

    def online_user_ids(self) -> set[int]:
        with self._lock:
            return set(self._by_user)

    def clear(self) -> None:
        with self._lock:
            self._by_user.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_user)


__all__ = ["ChannelHandle", "LiveChannelRegistry"]
