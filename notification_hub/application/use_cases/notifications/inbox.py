"""Use cases behind the notification inbox endpoints."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from math import ceil

from sqlalchemy.orm import Session

from notification_hub.domain.entities import Notification
from notification_hub.infrastructure.repositories import NotificationRepository

MAX_PAGE_SIZE = 100


@dataclass
class NotificationPage:
    items: Sequence[Notification]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return ceil(self.total / self.limit) if self.limit else 0


def list_notifications(
    session: Session, user_id: int, *, page: int = 1, limit: int = 20
) -> NotificationPage:
    """Return one page of the user's notifications, newest first."""

    if page < 1:
        raise ValueError("La página debe ser mayor o igual a 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"El límite debe estar entre 1 y {MAX_PAGE_SIZE}")
    items, total = NotificationRepository(session).list_for_user(
        user_id, page=page, limit=limit
    )
    return NotificationPage(items=items, total=total, page=page, limit=limit)


def count_unread(session: Session, user_id: int) -> int:
    return NotificationRepository(session).count_unread(user_id)


def mark_notification_as_read(
    session: Session, notification_id: int, *, user_id: int
) -> Notification:
    """Mark one notification as read or raise ``LookupError`` when it is not the user's."""

    notification = NotificationRepository(session).mark_as_read(
        notification_id, user_id=user_id
    )
    if notification is None:
        raise LookupError("Notificación no encontrada")
    return notification


def acknowledge_notifications(
    session: Session, notification_ids: Iterable[int], *, user_id: int
) -> int:
    unique_ids = list(dict.fromkeys(int(value) for value in notification_ids))
    return NotificationRepository(session).mark_many_as_read(unique_ids, user_id=user_id)


def mark_all_as_read(session: Session, user_id: int) -> int:
    return NotificationRepository(session).mark_all_as_read(user_id)


def delete_all_notifications(session: Session, user_id: int) -> int:
    return NotificationRepository(session).delete_all_for_user(user_id)


def delete_old_notifications(session: Session, user_id: int, *, days: int = 30) -> int:
    if days < 1:
        raise ValueError("Los días deben ser mayores o iguales a 1")
    return NotificationRepository(session).delete_older_than(user_id, days)


__all__ = [
    "MAX_PAGE_SIZE",
    "NotificationPage",
    "acknowledge_notifications",
    "count_unread",
    "delete_all_notifications",
    "delete_old_notifications",
    "list_notifications",
    "mark_all_as_read",
    "mark_notification_as_read",
]
