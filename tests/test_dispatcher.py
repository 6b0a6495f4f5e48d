"""Tests for the notification dispatcher and its event operations."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from notification_hub.application.background import BackgroundWorkQueue
from notification_hub.application.use_cases.notifications import (
    NotificationDispatcher,
    NotificationPersistenceError,
    contract_link,
)
from notification_hub.domain.entities import (
    Notification,
    NotificationPriority,
    NotificationType,
    PaymentOverdueMetadata,
)
from notification_hub.infrastructure import email
from notification_hub.infrastructure.models import NotificationModel
from notification_hub.utils import app_now


class RecordingPublisher:
    def __init__(self) -> None:
        self.published: list[Notification] = []

    def publish(self, notification: Notification) -> bool:
        self.published.append(notification)
        return True


def _db_error() -> OperationalError:
    return OperationalError("INSERT", {}, Exception("disk I/O error"))


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def dispatcher(db_session, publisher) -> NotificationDispatcher:
    return NotificationDispatcher(
        db_session,
        publisher,
        work_queue=BackgroundWorkQueue(retry_delay=0),
    )


def _stored(db_session, notification_type: str | None = None) -> list[NotificationModel]:
    query = db_session.query(NotificationModel)
    if notification_type:
        query = query.filter(NotificationModel.type == notification_type)
    return query.order_by(NotificationModel.user_id).all()


def test_create_persists_and_publishes(dispatcher, publisher, seed, db_session):
    seed.user(5)

    saved = dispatcher.create(
        Notification(
            id=None,
            recipient_id=5,
            type=NotificationType.INFO,
            title="Hola",
            message="Mensaje",
        )
    )

    assert saved.id is not None
    assert saved.created_at is not None
    assert publisher.published == [saved]
    assert len(_stored(db_session)) == 1


def test_create_raises_persistence_error(dispatcher, publisher, monkeypatch):
    def _fail(_notification):
        raise _db_error()

    monkeypatch.setattr(dispatcher.notifications, "create", _fail)

    with pytest.raises(NotificationPersistenceError):
        dispatcher.create(
            Notification(id=None, recipient_id=1, type="info", title="t", message="m")
        )
    assert publisher.published == []


def test_payment_overdue_is_deduplicated_within_window(dispatcher, seed, db_session):
    seed.user(3)
    seed.contract(8, created_by=3)

    first = dispatcher.notify_payment_overdue(8, 14)
    second = dispatcher.notify_payment_overdue(8, 14)

    assert len(first) == 1
    assert first[0].priority is NotificationPriority.HIGH
    assert first[0].link == contract_link(8)
    assert second == []
    assert len(_stored(db_session, "payment_overdue")) == 1


def test_payment_overdue_with_other_day_count_is_not_deduplicated(dispatcher, seed, db_session):
    seed.user(3)
    seed.contract(8, created_by=3)

    dispatcher.notify_payment_overdue(8, 14)
    dispatcher.notify_payment_overdue(8, 21)

    assert len(_stored(db_session, "payment_overdue")) == 2


def test_payment_overdue_outside_window_is_notified_again(dispatcher, seed, db_session):
    seed.user(3)
    seed.contract(8, created_by=3)
    dispatcher.notifications.create(
        Notification(
            id=None,
            recipient_id=3,
            type=NotificationType.PAYMENT_OVERDUE,
            title="Pago atrasado",
            message="...",
            metadata=PaymentOverdueMetadata(contract_id=8, days_overdue=14),
            created_at=app_now() - timedelta(hours=25),
        )
    )

    assert len(dispatcher.notify_payment_overdue(8, 14)) == 1


def test_payment_overdue_skips_when_duplicate_check_fails(
    dispatcher, seed, db_session, monkeypatch
):
    seed.user(3)
    seed.contract(8, created_by=3)

    def _fail(*_args, **_kwargs):
        raise _db_error()

    monkeypatch.setattr(dispatcher.notifications, "find_recent_matching", _fail)

    assert dispatcher.notify_payment_overdue(8, 14) == []
    assert _stored(db_session) == []


def test_fan_out_continues_after_a_failed_recipient(
    dispatcher, seed, db_session, monkeypatch, caplog
):
    seed.user(1, role="admin")
    seed.user(3)
    seed.user(9)
    seed.contract(42, created_by=3)
    seed.assign(42, 9)

    original_create = dispatcher.notifications.create

    def _flaky(notification):
        if notification.recipient_id == 3:
            raise _db_error()
        return original_create(notification)

    monkeypatch.setattr(dispatcher.notifications, "create", _flaky)

    with caplog.at_level("WARNING"):
        created = dispatcher.notify_contract_expiring(42, 15)

    assert sorted(item.recipient_id for item in created) == [1, 9]
    assert "Notification for user 3 skipped" in caplog.text


@pytest.mark.parametrize(
    ("days", "expected"),
    [(7, NotificationPriority.HIGH), (3, NotificationPriority.HIGH), (15, NotificationPriority.NORMAL)],
)
def test_contract_expiring_priority(dispatcher, seed, days, expected):
    seed.user(3)
    seed.contract(42, created_by=3, end_date=date(2030, 1, 31))

    created = dispatcher.notify_contract_expiring(42, days)

    assert [item.priority for item in created] == [expected]
    assert "31/01/2030" in created[0].message
    assert created[0].metadata.to_dict() == {"contract_id": 42, "days_until_expiration": days}


def test_contract_assignment_skips_inactive_and_queues_email(
    dispatcher, seed, monkeypatch
):
    seed.user(3, name="Ana")
    seed.user(7, is_active=False)
    seed.user(9)
    seed.contract(42, created_by=3)
    sent: list[tuple] = []

    def _fake_send(email_address, name, **kwargs):
        sent.append((email_address, name, kwargs["contract_number"], kwargs["assigned_by"]))
        return True

    monkeypatch.setattr(email, "email_enabled", lambda: True)
    monkeypatch.setattr(email, "send_contract_assignment_email", _fake_send)

    created = dispatcher.notify_contract_assignment(42, [3, 7, 9, 404], assigner_id=3)

    assert [item.recipient_id for item in created] == [9]
    assert "Ana" in created[0].message
    assert dispatcher.work_queue.pending() == 1
    assert dispatcher.work_queue.run_pending() == 1
    assert sent == [("user9@example.com", "Usuario 9", "CT-0042", "Ana")]


def test_contract_assignment_does_not_queue_email_when_disabled(dispatcher, seed):
    seed.user(3)
    seed.user(9)
    seed.contract(42, created_by=3)

    assert len(dispatcher.notify_contract_assignment(42, [9], assigner_id=3)) == 1
    assert dispatcher.work_queue.pending() == 0


def test_contract_assignment_without_assignees_notifies_nobody(
    dispatcher, seed, db_session, monkeypatch
):
    seed.user(3, name="Ana")
    seed.user(9)
    seed.user(11)
    seed.contract(42, created_by=3)
    seed.assign(42, 9)
    seed.assign(42, 11)
    monkeypatch.setattr(email, "email_enabled", lambda: True)

    assert dispatcher.notify_contract_assignment(42, [], assigner_id=3) == []
    assert dispatcher.notify_contract_assignment(42, iter(()), assigner_id=3) == []
    assert _stored(db_session) == []
    assert dispatcher.work_queue.pending() == 0


def test_contract_assignment_requires_contract_and_assigner(dispatcher, seed):
    seed.user(9)

    assert dispatcher.notify_contract_assignment(404, [9], assigner_id=9) == []


def test_role_change_is_gated_by_access(dispatcher, seed, monkeypatch):
    seed.user(3)
    seed.user(9)
    seed.user(11)
    seed.contract(42, created_by=3)
    seed.assign(42, 9, role="editor")
    monkeypatch.setattr(email, "email_enabled", lambda: True)
    monkeypatch.setattr(email, "send_role_change_email", lambda *args, **kwargs: True)

    allowed = dispatcher.notify_role_change(42, 9, "owner", changer_id=3)
    denied = dispatcher.notify_role_change(42, 11, "owner", changer_id=3)

    assert len(allowed) == 1
    assert '"Propietario"' in allowed[0].message
    assert allowed[0].metadata.to_dict()["new_role"] == "owner"
    assert denied == []
    assert dispatcher.work_queue.pending() == 1


def test_service_comment_targets_contract_and_trims_preview(dispatcher, seed):
    seed.user(3)
    seed.user(9, name="Bruno")
    seed.contract(42, created_by=3)
    seed.assign(42, 9)
    seed.service(5, 42, name="Soporte")

    created = dispatcher.notify_service_comment(5, author_id=9, comment_text="x" * 250)

    assert [item.recipient_id for item in created] == [3]
    metadata = created[0].metadata.to_dict()
    assert len(metadata["comment_preview"]) == 100
    assert created[0].link == "/home/contracts/view/42#service-5"
    assert "Bruno" in created[0].message


def test_service_status_change_uses_status_label(dispatcher, seed):
    seed.user(3)
    seed.user(9)
    seed.contract(42, created_by=3)
    seed.assign(42, 9)
    seed.service(5, 42)

    created = dispatcher.notify_service_status_change(5, "in_progress", changed_by=3)

    assert [item.recipient_id for item in created] == [9]
    assert '"En curso"' in created[0].message


def test_payment_received_keeps_actor(dispatcher, seed):
    seed.user(3)
    seed.contract(42, created_by=3)

    created = dispatcher.notify_payment_received(42, installment_id=2, actor_id=3)

    assert [item.recipient_id for item in created] == [3]


def test_admin_broadcasts(dispatcher, seed):
    seed.user(1, role="admin")
    seed.user(2, role="admin")
    seed.user(4, role="admin", is_active=False)
    seed.user(3)
    seed.contract(42, created_by=1)

    new_contract = dispatcher.notify_admins_new_contract(42, creator_id=1)
    new_user = dispatcher.notify_admins_new_user(3, creator_id=1)
    alert = dispatcher.notify_admins_failed_logins("x@example.com", "10.0.0.1", 5)
    approval = dispatcher.notify_admins_contract_needs_approval(42, "Monto elevado")
    system = dispatcher.notify_admins_system_event("Respaldo", "El respaldo falló")

    assert [item.recipient_id for item in new_contract] == [2]
    assert [item.recipient_id for item in new_user] == [1, 2]
    assert all(item.priority is NotificationPriority.HIGH for item in alert + approval + system)
    assert alert[0].metadata.to_dict()["attempt_count"] == 5
    assert approval[0].metadata.to_dict()["reason"] == "Monto elevado"
    assert system[0].type is NotificationType.SYSTEM_EVENT


def test_notify_admins_accepts_unregistered_types(dispatcher, seed):
    seed.user(1, role="admin")

    created = dispatcher.notify_admins(
        "backup_finished", "Respaldo", "Listo", metadata={"size_mb": 12}
    )

    assert created[0].type == "backup_finished"
    assert created[0].metadata.to_dict() == {"size_mb": 12}


def test_broadcast_system_notice(dispatcher, seed):
    seed.user(1, role="admin")
    seed.user(3)
    seed.user(5, is_active=False)

    created = dispatcher.broadcast_system_notice(
        "system_maintenance", "Mantenimiento", "El sábado a las 22:00"
    )

    assert [item.recipient_id for item in created] == [1, 3]
    with pytest.raises(ValueError):
        dispatcher.broadcast_system_notice("payment_overdue", "x", "y")
