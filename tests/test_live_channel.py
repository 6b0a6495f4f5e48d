"""Tests for the live channel registry and the notification publisher."""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime

import anyio
import pytest

from notification_hub.domain.entities import (
    Notification,
    NotificationPriority,
    NotificationType,
    PaymentOverdueMetadata,
)
from notification_hub.infrastructure.notifications import (
    NEW_NOTIFICATION_EVENT,
    LiveChannelRegistry,
    NotificationPublisher,
    serialize_notification,
)


class FakeHandle:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    async def send_json(self, data) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(data)


def _notification(recipient_id: int = 9) -> Notification:
    return Notification(
        id=15,
        recipient_id=recipient_id,
        type=NotificationType.PAYMENT_OVERDUE,
        title="Pago atrasado",
        message="El pago tiene 7 días de atraso.",
        link="/home/contracts/view/42",
        priority=NotificationPriority.HIGH,
        metadata=PaymentOverdueMetadata(contract_id=42, days_overdue=7),
        created_at=datetime(2030, 3, 1, 9, 30),
    )


def test_last_registration_wins():
    registry = LiveChannelRegistry()
    first, second = FakeHandle(), FakeHandle()

    assert registry.register(9, first) is None
    assert registry.register(9, second) is first
    assert registry.lookup(9) is second
    assert len(registry) == 1


def test_unregister_ignores_superseded_handles():
    registry = LiveChannelRegistry()
    stale, current = FakeHandle(), FakeHandle()
    registry.register(9, stale)
    registry.register(9, current)

    assert registry.unregister(stale) is None
    assert registry.lookup(9) is current
    assert registry.unregister(current) == 9
    assert registry.lookup(9) is None


def test_concurrent_registrations_keep_one_handle_per_user():
    registry = LiveChannelRegistry()
    handles = [FakeHandle() for _ in range(50)]

    threads = [
        threading.Thread(target=registry.register, args=(index % 5, handle))
        for index, handle in enumerate(handles)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert registry.online_user_ids() == {0, 1, 2, 3, 4}
    assert all(registry.lookup(user_id) in handles for user_id in range(5))


def test_serialize_notification():
    payload = serialize_notification(_notification())

    assert payload["type"] == "payment_overdue"
    assert payload["priority"] == "high"
    assert payload["user_id"] == 9
    assert payload["metadata"] == {"contract_id": 42, "days_overdue": 7}
    assert payload["created_at"] == "2030-03-01T09:30:00"
    assert payload["read_at"] is None


def test_publish_without_subscriber_returns_false():
    publisher = NotificationPublisher(LiveChannelRegistry())

    assert publisher.publish(_notification()) is False


@pytest.mark.anyio
async def test_publish_on_running_loop():
    registry = LiveChannelRegistry()
    handle = FakeHandle()
    registry.register(9, handle)
    publisher = NotificationPublisher(registry)

    assert publisher.publish(_notification()) is True
    await asyncio.sleep(0.01)

    assert handle.sent == [
        {"type": NEW_NOTIFICATION_EVENT, "data": serialize_notification(_notification())}
    ]


@pytest.mark.anyio
async def test_publish_from_worker_thread():
    registry = LiveChannelRegistry()
    handle = FakeHandle()
    registry.register(9, handle)
    publisher = NotificationPublisher(registry)

    assert await anyio.to_thread.run_sync(publisher.publish, _notification()) is True
    assert len(handle.sent) == 1


@pytest.mark.anyio
async def test_publish_from_plain_thread_uses_bound_loop():
    registry = LiveChannelRegistry()
    handle = FakeHandle()
    registry.register(9, handle)
    publisher = NotificationPublisher(registry)
    publisher.bind_loop(asyncio.get_running_loop())

    assert await asyncio.to_thread(publisher.publish, _notification()) is True
    await asyncio.sleep(0.01)

    assert len(handle.sent) == 1


@pytest.mark.anyio
async def test_failed_push_drops_the_channel():
    registry = LiveChannelRegistry()
    registry.register(9, FakeHandle(fail=True))
    publisher = NotificationPublisher(registry)

    assert publisher.publish(_notification()) is True
    await asyncio.sleep(0.01)

    assert registry.lookup(9) is None
