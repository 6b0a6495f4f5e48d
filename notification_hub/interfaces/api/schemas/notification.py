"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from notification_hub.domain.entities import Notification


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: int
    user_id: int
    type: str
    title: str
    message: str
    link: str | None = None
    priority: Literal["normal", "high"] = "normal"
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id or 0,
            user_id=notification.recipient_id,
            type=notification.type_value,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            priority=notification.priority.value,
            metadata=notification.metadata.to_dict(),
            is_read=notification.is_read,
            read_at=notification.read_at,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    """One page of notifications plus the counters needed to paginate."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[NotificationRead]
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., alias="totalPages")


class UnreadCountResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    unread_count: int = Field(..., alias="unreadCount")


class UpdatedResponse(BaseModel):
    updated: int


class DeletedResponse(BaseModel):
    deleted: int


class SystemNoticeRequest(BaseModel):
    """Global notice sent by an administrator to every active user."""

    type: Literal["system_maintenance", "system_update"]
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    link: str | None = Field(default=None, max_length=255)


class SystemNoticeAccepted(BaseModel):
    queued: bool = True
    type: str


__all__ = [
    "DeletedResponse",
    "NotificationListResponse",
    "NotificationRead",
    "SystemNoticeAccepted",
    "SystemNoticeRequest",
    "UnreadCountResponse",
    "UpdatedResponse",
]
