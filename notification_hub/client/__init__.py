"""Client for the notification API: cache, sync and resilience."""

from .api import NotificationApiClient, NotificationPage
from .channel import LiveChannelListener
from .config import ClientSettings
from .storage import (
    BoundedHistoryCache,
    CachedNotification,
    JsonFileStorage,
    MemoryStorage,
    extract_server_id,
)
from .sync import NotificationSync, relevant_to_user
from .toasts import Toast, ToastKind, ToastQueue

__all__ = [
    "BoundedHistoryCache",
    "CachedNotification",
    "ClientSettings",
    "JsonFileStorage",
    "LiveChannelListener",
    "MemoryStorage",
    "NotificationApiClient",
    "NotificationPage",
    "NotificationSync",
    "Toast",
    "ToastKind",
    "ToastQueue",
    "extract_server_id",
    "relevant_to_user",
]
