"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from notification_hub.domain.entities import (
    Notification,
    NotificationPriority,
    NotificationType,
    parse_metadata,
)
from notification_hub.infrastructure.models import NotificationModel
from notification_hub.utils import app_now, app_now_naive, localize, to_storage


def _coerce_type(value: str) -> NotificationType | str:
    try:
        return NotificationType(value)
    except ValueError:
        return value


class NotificationRepository:
    """Provide storage operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get(self, notification_id: int, *, user_id: int | None = None) -> Notification | None:
        model = self._get_model(notification_id, user_id=user_id)
        return self._to_entity(model) if model else None

    def list_for_user(
        self, user_id: int, *, page: int = 1, limit: int = 20
    ) -> tuple[Sequence[Notification], int]:
        """Return one page of ``user_id``'s notifications, newest first, and the total."""

        page = max(page, 1)
        query = self.session.query(NotificationModel).filter(
            NotificationModel.user_id == user_id
        )
        total = query.count()
        models = (
            query.order_by(
                NotificationModel.created_at.desc(), NotificationModel.id.desc()
            )
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return [self._to_entity(model) for model in models], total

    def count_unread(self, user_id: int) -> int:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.is_read.is_(False))
            .count()
        )

    def mark_as_read(self, notification_id: int, *, user_id: int) -> Notification | None:
        """Flag one notification as read. Already read rows keep their timestamp."""

        model = self._get_model(notification_id, user_id=user_id)
        if model is None:
            return None
        if not model.is_read:
            model.is_read = True
            model.read_at = app_now_naive()
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def mark_many_as_read(self, notification_ids: Sequence[int], *, user_id: int) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        updated = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.id.in_(ids))
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.is_read.is_(False))
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: app_now_naive(),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def mark_all_as_read(self, user_id: int) -> int:
        updated = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.is_read.is_(False))
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: app_now_naive(),
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def delete_all_for_user(self, user_id: int) -> int:
        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def delete_older_than(self, user_id: int, days: int) -> int:
        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.created_at < self._cutoff(days))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def purge_older_than(self, days: int) -> int:
        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.created_at < self._cutoff(days))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def find_recent_matching(
        self,
        notification_type: str,
        metadata_subset: Mapping[str, Any],
        *,
        since: datetime,
    ) -> Notification | None:
        """Return the newest notification of ``notification_type`` created after
        ``since`` whose metadata contains every pair of ``metadata_subset``."""

        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.type == notification_type)
            .filter(NotificationModel.created_at >= to_storage(since))
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        for model in query.all():
            payload = model.payload or {}
            if all(payload.get(key) == value for key, value in metadata_subset.items()):
                return self._to_entity(model)
        return None

    def _get_model(
        self, notification_id: int, *, user_id: int | None = None
    ) -> NotificationModel | None:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.id == notification_id
        )
        if user_id is not None:
            query = query.filter(NotificationModel.user_id == user_id)
        return query.first()

    @staticmethod
    def _cutoff(days: int) -> datetime:
        return to_storage(app_now() - timedelta(days=days))

    @staticmethod
    def _apply_entity_to_model(model: NotificationModel, notification: Notification) -> None:
        model.created_at = (
            to_storage(notification.created_at)
            or app_now_naive()
        )
        model.user_id = notification.recipient_id
        model.type = notification.type_value
        model.title = notification.title
        model.message = notification.message
        model.link = notification.link
        model.priority = NotificationPriority(notification.priority).value
        model.payload = notification.metadata.to_dict()
        model.is_read = notification.is_read
        model.read_at = to_storage(notification.read_at)

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.user_id,
            type=_coerce_type(model.type),
            title=model.title,
            message=model.message,
            link=model.link,
            priority=NotificationPriority(model.priority or NotificationPriority.NORMAL.value),
            metadata=parse_metadata(model.type, model.payload),
            created_at=localize(model.created_at),
            read_at=localize(model.read_at),
            is_read=bool(model.is_read),
        )


__all__ = ["NotificationRepository"]
