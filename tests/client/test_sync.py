"""Tests for the client sync layer and the live channel listener."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from notification_hub.client import (
    BoundedHistoryCache,
    CachedNotification,
    ClientSettings,
    JsonFileStorage,
    LiveChannelListener,
    MemoryStorage,
    NotificationPage,
    NotificationSync,
    ToastQueue,
    relevant_to_user,
)
from notification_hub.client.resilience import ApiRequestError


def _payload(server_id: int, **overrides) -> dict:
    payload = {
        "id": server_id,
        "user_id": 9,
        "type": "info",
        "title": f"Aviso {server_id}",
        "message": "Contenido",
        "priority": "normal",
        "metadata": {},
        "is_read": False,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    payload.update(overrides)
    return payload


class FakeApi:
    """In-memory stand-in for :class:`NotificationApiClient`."""

    def __init__(self, pages: dict[int, list[dict]] | None = None, unread: int = 0) -> None:
        self.pages = pages or {}
        self.unread = unread
        self.fail_acks = False
        self.calls: list[tuple] = []

    async def list(self, page: int = 1) -> NotificationPage:
        self.calls.append(("list", page))
        items = [CachedNotification.from_api(item) for item in self.pages.get(page, [])]
        return NotificationPage(
            items=items,
            total=sum(len(value) for value in self.pages.values()),
            page=page,
            limit=20,
            total_pages=len(self.pages),
        )

    async def unread_count(self) -> int:
        self.calls.append(("unread_count",))
        return self.unread

    async def mark_as_read(self, server_id: int):
        self.calls.append(("mark_as_read", server_id))
        if self.fail_acks:
            raise ApiRequestError("Servicio no disponible", 503)

    async def mark_all_as_read(self) -> int:
        self.calls.append(("mark_all_as_read",))
        if self.fail_acks:
            raise ApiRequestError("Servicio no disponible", 503)
        return 0

    async def delete_all(self) -> int:
        self.calls.append(("delete_all",))
        return 0

    async def delete_old(self, days: int = 30) -> int:
        self.calls.append(("delete_old", days))
        return 1


def _sync(api: FakeApi, **kwargs) -> NotificationSync:
    async def _no_sleep(_delay: float) -> None:
        return None

    return NotificationSync(
        api,
        BoundedHistoryCache(MemoryStorage()),
        ToastQueue(),
        sleep=_no_sleep,
        **kwargs,
    )


@pytest.mark.anyio
async def test_fetch_replaces_then_appends_pages():
    api = FakeApi({1: [_payload(3), _payload(2)], 2: [_payload(1)]})
    sync = _sync(api)

    assert await sync.fetch(1) is True
    assert sync.has_more() is True
    assert await sync.load_more() is True

    assert [entry.id for entry in sync.history] == ["server-3", "server-2", "server-1"]
    assert sync.has_more() is False
    assert await sync.load_more() is False

    await sync.refresh()
    assert [entry.id for entry in sync.history] == ["server-3", "server-2"]
    assert sync.current_page == 1


@pytest.mark.anyio
async def test_mark_all_as_read_is_synchronous_and_survives_ack_failure():
    api = FakeApi({1: [_payload(2), _payload(1)]}, unread=2)
    api.fail_acks = True
    sync = _sync(api)
    await sync.fetch(1)
    assert sync.unread_count == 2

    sync.mark_all_as_read()

    assert all(entry.is_read for entry in sync.history)
    assert sync.unread_count == 0
    assert all(entry.is_read for entry in sync.cache.load())

    await sync.drain()
    assert ("mark_all_as_read",) in api.calls
    assert all(entry.is_read for entry in sync.history)
    assert sync.unread_count == 0


@pytest.mark.anyio
async def test_mark_as_read_acknowledges_and_resyncs_counter():
    api = FakeApi({1: [_payload(2), _payload(1)]}, unread=1)
    sync = _sync(api)
    await sync.fetch(1)

    assert sync.mark_as_read("server-1") is True
    assert sync.unread_count == 1
    assert sync.mark_as_read("server-404") is False

    await sync.drain()
    assert ("mark_as_read", 1) in api.calls
    assert api.calls[-1] == ("unread_count",)


@pytest.mark.anyio
async def test_handle_push_prepends_toasts_and_filters():
    api = FakeApi({1: [_payload(1)]}, unread=2)
    sync = _sync(api, is_relevant=relevant_to_user(9, can_receive=lambda contract_id: contract_id == 42))
    await sync.fetch(1)

    accepted = sync.handle_push(_payload(5, priority="high", metadata={"contract_id": 42}))
    other_user = sync.handle_push(_payload(6, user_id=3))
    other_contract = sync.handle_push(_payload(7, metadata={"contract_id": 8}))
    duplicate = sync.handle_push(_payload(5, title="Actualizado"))

    assert accepted is not None
    assert other_user is None
    assert other_contract is None
    assert duplicate.title == "Actualizado"
    assert [entry.id for entry in sync.history] == ["server-5", "server-1"]
    assert sync.toasts.active()[0].duration == 8

    await sync.drain()
    assert sync.unread_count == 2


@pytest.mark.anyio
async def test_initialize_runs_once():
    api = FakeApi({1: [_payload(1)]}, unread=1)
    sync = _sync(api)

    assert sync.initialize() is True
    assert sync.initialize() is False
    await sync.drain()

    assert api.calls.count(("list", 1)) == 1
    assert api.calls.count(("unread_count",)) == 1
    assert sync.unread_count == 1


@pytest.mark.anyio
async def test_clear_history_and_delete_old():
    api = FakeApi({1: [_payload(1)]})
    sync = _sync(api)
    await sync.fetch(1)

    sync.clear_history()
    assert sync.history == []
    await sync.drain()
    assert ("delete_all",) in api.calls

    assert await sync.delete_old(15) == 1
    assert ("delete_old", 15) in api.calls
    assert [entry.id for entry in sync.history] == ["server-1"]


@pytest.mark.anyio
async def test_clear_old_entries_is_local_only():
    old = (datetime.now(timezone.utc) - timedelta(days=10)).isoformat()
    api = FakeApi({1: [_payload(2), _payload(1, created_at=old)]})
    sync = _sync(api)
    await sync.fetch(1)

    assert sync.clear_old_entries(days=7) == 1
    assert [entry.id for entry in sync.history] == ["server-2"]
    assert api.calls == [("list", 1)]


@pytest.mark.anyio
async def test_reset_forgets_the_session():
    api = FakeApi({1: [_payload(1)]})
    sync = _sync(api)
    sync.initialize()
    await sync.drain()
    sync.toasts.info("hola")

    sync.reset()

    assert sync.history == []
    assert sync.unread_count == 0
    assert sync.initialized is False
    assert len(sync.toasts) == 0
    assert sync.cache.load() == []


@pytest.mark.anyio
async def test_pushes_keep_only_the_most_recent_entries():
    api = FakeApi()
    sync = NotificationSync(api, BoundedHistoryCache(MemoryStorage(), capacity=100))

    for server_id in range(1, 251):
        sync.handle_push(_payload(server_id))
    await sync.drain()

    assert len(sync.history) == 100
    assert sync.history[0].id == "server-250"
    assert sync.history[-1].id == "server-151"


def test_unread_count_is_restored_from_the_cache():
    storage = MemoryStorage()
    cache = BoundedHistoryCache(storage)
    cache.save([CachedNotification.from_api(_payload(1))])
    cache.save_unread_count(37)

    restored = NotificationSync(FakeApi(), BoundedHistoryCache(storage))
    fresh = NotificationSync(FakeApi(), BoundedHistoryCache(MemoryStorage()))

    assert restored.unread_count == 37
    assert fresh.unread_count == 0


def test_local_changes_update_the_stored_unread_count():
    storage = MemoryStorage()
    sync = NotificationSync(FakeApi(), BoundedHistoryCache(storage))
    sync.handle_push(_payload(1))
    sync.handle_push(_payload(2))

    sync.mark_as_read("server-1")

    assert BoundedHistoryCache(storage).load_unread_count() == 1


@pytest.mark.anyio
async def test_from_settings_wires_cache_toasts_and_delays(tmp_path):
    seeded = BoundedHistoryCache(JsonFileStorage(tmp_path / "notifications.json"))
    seeded.save([CachedNotification.from_api(_payload(1))])
    seeded.save_unread_count(12)
    settings = ClientSettings(
        base_url="http://api.test",
        token="abc",
        cache_path=tmp_path / "notifications.json",
        history_capacity=5,
        toast_capacity=2,
        toast_duration_seconds=4.0,
        toast_high_priority_duration_seconds=9.0,
        init_delay_seconds=0.25,
        unread_delay_seconds=0.5,
    )

    sync = NotificationSync.from_settings(settings)
    try:
        assert isinstance(sync.cache.storage, JsonFileStorage)
        assert sync.cache.capacity == 5
        assert sync.toasts.max_items == 2
        assert sync.toasts.default_duration == 4.0
        assert sync.toasts.high_priority_duration == 9.0
        assert sync.init_delay == 0.25
        assert sync.unread_delay == 0.5
        assert sync.api.transport.client.headers["Authorization"] == "Bearer abc"

        assert [entry.id for entry in sync.history] == ["server-1"]
        assert sync.unread_count == 12
    finally:
        await sync.api.aclose()


class FakeConnection:
    def __init__(self, incoming: list) -> None:
        self.incoming = list(incoming)
        self.sent: list = []

    async def send_json(self, data) -> None:
        self.sent.append(data)

    async def receive_json(self):
        if not self.incoming:
            raise ConnectionError("closed")
        return self.incoming.pop(0)


@pytest.mark.anyio
async def test_listener_registers_and_forwards_pushes():
    sync = _sync(FakeApi(unread=1))
    connection = FakeConnection(
        [
            {"type": "registered", "user_id": 9},
            {"type": "new_notification", "data": _payload(11)},
            {"type": "pong"},
        ]
    )
    listener = LiveChannelListener(sync, connection, user_id=9)

    with pytest.raises(ConnectionError):
        await listener.run()
    await listener.acknowledge([11])
    await sync.drain()

    assert connection.sent == [
        {"type": "register", "user_id": 9},
        {"type": "ack", "ids": [11]},
    ]
    assert listener.registered is True
    assert [entry.id for entry in sync.history] == ["server-11"]
