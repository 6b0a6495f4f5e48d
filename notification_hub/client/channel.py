"""Client side of the live push channel."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from .sync import NotificationSync

logger = logging.getLogger(__name__)


class JsonConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def receive_json(self) -> Any: ...


class LiveChannelListener:
    """Announce the user on an open connection and feed pushes to the sync layer."""

    def __init__(self, sync: NotificationSync, connection: JsonConnection, user_id: int) -> None:
        self.sync = sync
        self.connection = connection
        self.user_id = user_id
        self.registered = False

    async def start(self) -> None:
        await self.connection.send_json({"type": "register", "user_id": self.user_id})

    async def ping(self) -> None:
        await self.connection.send_json({"type": "ping"})

    async def acknowledge(self, server_ids: Iterable[int]) -> None:
        ids = [int(value) for value in server_ids]
        if ids:
            await self.connection.send_json({"type": "ack", "ids": ids})

    async def handle_message(self, message: Any) -> None:
        if not isinstance(message, Mapping):
            return
        message_type = message.get("type")
        if message_type == "new_notification":
            data = message.get("data")
            if isinstance(data, Mapping):
                self.sync.handle_push(data)
        elif message_type == "registered":
            self.registered = True
        elif message_type == "error":
            logger.warning("Live channel error: %s", message.get("detail"))

    async def run(self) -> None:
        """Register and then process messages until the connection raises."""

        await self.start()
        while True:
            message = await self.connection.receive_json()
            await self.handle_message(message)


__all__ = ["JsonConnection", "LiveChannelListener"]
