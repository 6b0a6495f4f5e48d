"""Tests for the client history cache and the toast queue."""

from __future__ import annotations

import json

import pytest

from notification_hub.client import (
    BoundedHistoryCache,
    CachedNotification,
    JsonFileStorage,
    MemoryStorage,
    ToastKind,
    ToastQueue,
    extract_server_id,
)
from notification_hub.client.storage import HISTORY_KEY


def _entry(server_id: int, **overrides) -> CachedNotification:
    payload = {
        "id": server_id,
        "type": "info",
        "title": f"Aviso {server_id}",
        "message": "Contenido",
        "created_at": "2030-03-01T10:00:00+00:00",
    }
    payload.update(overrides)
    return CachedNotification.from_api(payload)


def test_local_ids_embed_the_server_id():
    entry = _entry(31)

    assert entry.id == "server-31"
    assert entry.server_id == 31
    assert extract_server_id("local-abc") is None


def test_cache_keeps_the_most_recent_entries():
    cache = BoundedHistoryCache(MemoryStorage(), capacity=3)

    kept = cache.save([_entry(index) for index in range(5, 0, -1)])

    assert [entry.server_id for entry in kept] == [5, 4, 3]
    assert [entry.server_id for entry in cache.load()] == [5, 4, 3]


def test_json_file_storage_survives_a_new_instance(tmp_path):
    path = tmp_path / "cache" / "notifications.json"
    BoundedHistoryCache(JsonFileStorage(path)).save([_entry(1, is_read=True)])
    BoundedHistoryCache(JsonFileStorage(path)).save_unread_count(4)

    reloaded = BoundedHistoryCache(JsonFileStorage(path))

    assert reloaded.load()[0].is_read is True
    assert reloaded.load()[0].created_at.isoformat() == "2030-03-01T10:00:00+00:00"
    assert reloaded.load_unread_count() == 4


def test_corrupt_history_is_discarded(caplog):
    storage = MemoryStorage()
    storage.set(HISTORY_KEY, json.dumps([{"title": "sin id"}]))

    with caplog.at_level("WARNING"):
        assert BoundedHistoryCache(storage).load() == []
    assert storage.get(HISTORY_KEY) is None


def test_cache_capacity_must_be_positive():
    with pytest.raises(ValueError):
        BoundedHistoryCache(MemoryStorage(), capacity=0)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_toast_queue_evicts_oldest_at_capacity():
    toasts = ToastQueue(max_items=3, clock=FakeClock())

    for index in range(4):
        toasts.info(f"mensaje {index}")

    assert [toast.message for toast in toasts.active()] == [
        "mensaje 1",
        "mensaje 2",
        "mensaje 3",
    ]


def test_toast_durations_and_expiry():
    clock = FakeClock()
    toasts = ToastQueue(clock=clock)

    info = toasts.info("hola")
    error = toasts.error("falló")
    sticky = toasts.warning("revisar", persistent=True)

    assert info.duration == 5
    assert error.duration == 7
    assert error.kind is ToastKind.ERROR

    clock.now = 6
    assert [toast.id for toast in toasts.active()] == [error.id, sticky.id]
    clock.now = 60
    assert [toast.id for toast in toasts.active()] == [sticky.id]
    assert toasts.dismiss(sticky.id) is True
    assert len(toasts) == 0


def test_high_priority_notifications_stay_longer():
    toasts = ToastQueue(clock=FakeClock())

    high = toasts.show_notification(_entry(1, priority="high"))
    normal = toasts.show_notification(_entry(2))

    assert high.duration == 8
    assert high.notification_id == "server-1"
    assert normal.duration == 5
