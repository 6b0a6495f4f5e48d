from .notification import (
    DeletedResponse,
    NotificationListResponse,
    NotificationRead,
    SystemNoticeAccepted,
    SystemNoticeRequest,
    UnreadCountResponse,
    UpdatedResponse,
)

__all__ = [
    "DeletedResponse",
    "NotificationListResponse",
    "NotificationRead",
    "SystemNoticeAccepted",
    "SystemNoticeRequest",
    "UnreadCountResponse",
    "UpdatedResponse",
]
