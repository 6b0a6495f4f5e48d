"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .metadata import NotificationMetadata, OpaqueMetadata
from .notification_type import NotificationPriority, NotificationType


@dataclass
class Notification:
    """Information message stored for exactly one recipient."""

    id: int | None
    recipient_id: int
    type: NotificationType | str
    title: str
    message: str
    link: str | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    metadata: NotificationMetadata = field(default_factory=OpaqueMetadata)
    created_at: datetime | None = None
    read_at: datetime | None = None
    is_read: bool = False

    @property
    def type_value(self) -> str:
        return self.type.value if isinstance(self.type, NotificationType) else str(self.type)


__all__ = ["Notification"]
