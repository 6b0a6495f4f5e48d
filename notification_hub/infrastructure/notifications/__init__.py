"""Realtime notification helpers for the infrastructure layer."""

from .publisher import NEW_NOTIFICATION_EVENT, NotificationPublisher, serialize_notification
from .registry import ChannelHandle, LiveChannelRegistry

__all__ = [
    "NEW_NOTIFICATION_EVENT",
    "ChannelHandle",
    "LiveChannelRegistry",
    "NotificationPublisher",
    "serialize_notification",
]
