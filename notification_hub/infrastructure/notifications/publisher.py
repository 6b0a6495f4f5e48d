"""Utility helpers to push stored notifications to live subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from anyio import from_thread

from notification_hub.domain.entities import Notification

from .registry import ChannelHandle, LiveChannelRegistry

logger = logging.getLogger(__name__)

NEW_NOTIFICATION_EVENT = "new_notification"


class NotificationPublisher:
    """Serialize notifications and schedule their delivery over the registry."""

    def __init__(
        self,
        registry: LiveChannelRegistry,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._registry = registry
        self._loop = loop

    @property
    def registry(self) -> LiveChannelRegistry:
        return self._registry

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Remember the server loop so plain threads can schedule pushes on it."""

        self._loop = loop

    def publish(self, notification: Notification) -> bool:
        """Push ``notification`` when its recipient is online.

        Returns ``True`` when a push was scheduled. Offline recipients find the
        notification on their next fetch.
        """

        handle = self._registry.lookup(notification.recipient_id)
        if handle is None:
            return False

        message = {
            "type": NEW_NOTIFICATION_EVENT,
            "data": serialize_notification(notification),
        }
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._publish_from_thread(notification.recipient_id, handle, message)
        loop.create_task(self._send(notification.recipient_id, handle, message))
        return True

    def _publish_from_thread(
        self, user_id: int, handle: ChannelHandle, message: dict[str, Any]
    ) -> bool:
        try:
            from_thread.run(self._send, user_id, handle, message)
            return True
        except RuntimeError:
            pass

        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning(
                "No event loop available to push notification to user %s", user_id
            )
            return False
        asyncio.run_coroutine_threadsafe(self._send(user_id, handle, message), loop)
        return True

    async def _send(
        self, user_id: int, handle: ChannelHandle, message: dict[str, Any]
    ) -> None:
        try:
            await handle.send_json(message)
        except Exception:
            logger.warning("Live push to user %s failed; dropping channel", user_id)
            self._registry.unregister(handle)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the push payload representation for ``notification``."""

    return {
        "id": notification.id,
        "user_id": notification.recipient_id,
        "type": notification.type_value,
        "title": notification.title,
        "message": notification.message,
        "link": notification.link,
        "priority": notification.priority.value
        if hasattr(notification.priority, "value")
        else str(notification.priority),
        "metadata": notification.metadata.to_dict(),
        "is_read": notification.is_read,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
    }


__all__ = ["NEW_NOTIFICATION_EVENT", "NotificationPublisher", "serialize_notification"]
