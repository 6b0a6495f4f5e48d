"""Typed wrappers over the notification HTTP API."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .config import ClientSettings
from .resilience import CircuitBreaker, RateLimiter, ResilientTransport, RetryPolicy
from .storage import CachedNotification

NOTIFICATIONS_PATH = "/notifications"


@dataclass
class NotificationPage:
    items: list[CachedNotification]
    total: int
    page: int
    limit: int
    total_pages: int


class NotificationApiClient:
    """Call the inbox endpoints through a :class:`ResilientTransport`."""

    def __init__(
        self,
        transport: ResilientTransport,
        *,
        page_size: int = 20,
        page_debounce: float = 1.5,
        unread_debounce: float = 2.0,
    ) -> None:
        self.transport = transport
        self.page_size = page_size
        self.page_debounce = page_debounce
        self.unread_debounce = unread_debounce

    @classmethod
    def from_settings(cls, settings: ClientSettings | None = None) -> "NotificationApiClient":
        settings = settings or ClientSettings()
        headers = {"Authorization": f"Bearer {settings.token}"} if settings.token else {}
        client = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=headers,
            timeout=settings.request_timeout_seconds,
        )
        transport = ResilientTransport(
            client,
            breaker=CircuitBreaker(
                failure_threshold=settings.breaker_failure_threshold,
                recovery_seconds=settings.breaker_recovery_seconds,
            ),
            limiter=RateLimiter(
                min_interval=settings.rate_limit_min_interval_seconds,
                max_concurrent=settings.rate_limit_max_concurrent,
                default_debounce=settings.rate_limit_debounce_seconds,
            ),
            retry_policy=RetryPolicy(max_retries=settings.retry_max_retries),
        )
        return cls(
            transport,
            page_size=settings.page_size,
            page_debounce=settings.page_debounce_seconds,
            unread_debounce=settings.unread_debounce_seconds,
        )

    async def list(self, page: int = 1) -> NotificationPage:
        data = await self.transport.get_json(
            NOTIFICATIONS_PATH,
            params={"page": page, "limit": self.page_size},
            key=f"notifications-page-{page}",
            debounce=self.page_debounce,
        )
        return NotificationPage(
            items=[CachedNotification.from_api(item) for item in data.get("items", [])],
            total=int(data.get("total", 0)),
            page=int(data.get("page", page)),
            limit=int(data.get("limit", self.page_size)),
            total_pages=int(data.get("totalPages", 0)),
        )

    async def unread_count(self) -> int:
        data = await self.transport.get_json(
            f"{NOTIFICATIONS_PATH}/unread-count",
            key="notifications-unread-count",
            debounce=self.unread_debounce,
        )
        return int(data.get("unreadCount", 0))

    async def mark_as_read(self, server_id: int) -> CachedNotification:
        data = await self.transport.patch_json(
            f"{NOTIFICATIONS_PATH}/{server_id}/read", debounce=0
        )
        return CachedNotification.from_api(data)

    async def mark_all_as_read(self) -> int:
        data = await self.transport.patch_json(f"{NOTIFICATIONS_PATH}/read-all", debounce=0)
        return int(data.get("updated", 0))

    async def delete_all(self) -> int:
        data = await self.transport.delete_json(
            f"{NOTIFICATIONS_PATH}/delete-all", debounce=0
        )
        return int(data.get("deleted", 0))

    async def delete_old(self, days: int = 30) -> int:
        data = await self.transport.delete_json(
            f"{NOTIFICATIONS_PATH}/delete-old",
            params={"days": days},
            key=f"notifications-delete-old-{days}",
            debounce=0,
        )
        return int(data.get("deleted", 0))

    async def aclose(self) -> None:
        await self.transport.aclose()


__all__ = ["NotificationApiClient", "NotificationPage"]
