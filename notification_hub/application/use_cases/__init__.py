"""Aggregate application use cases."""

from .notifications import NotificationDispatcher, RecipientResolver

__all__ = ["NotificationDispatcher", "RecipientResolver"]
