"""Tests for the resilient HTTP transport and the typed API client."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from notification_hub.client import NotificationApiClient
from notification_hub.client.resilience import (
    ApiRequestError,
    CircuitBreaker,
    RateLimiter,
    ResilientTransport,
    RetryPolicy,
)


async def _no_sleep(_delay: float) -> None:
    return None


def _transport(handler, *, breaker: CircuitBreaker | None = None) -> ResilientTransport:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://api.test"
    )
    return ResilientTransport(
        client,
        breaker=breaker or CircuitBreaker(),
        limiter=RateLimiter(min_interval=0, default_debounce=0),
        retry_policy=RetryPolicy(),
        sleep=_no_sleep,
    )


@pytest.mark.anyio
async def test_gateway_errors_are_retried_and_count_against_breaker():
    statuses = iter([502, 503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        return httpx.Response(status, json={"unreadCount": 4} if status == 200 else {})

    breaker = CircuitBreaker()
    transport = _transport(handler, breaker=breaker)

    assert await transport.get_json("/notifications/unread-count") == {"unreadCount": 4}
    assert breaker.failure_count == 1


@pytest.mark.anyio
async def test_client_errors_surface_with_detail_without_retry():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(404, json={"detail": "Notificación no encontrada"})

    breaker = CircuitBreaker()
    breaker.record_failure()
    transport = _transport(handler, breaker=breaker)

    with pytest.raises(ApiRequestError) as excinfo:
        await transport.patch_json("/notifications/3/read")

    assert calls == 1
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Notificación no encontrada"
    assert excinfo.value.retryable is False
    assert breaker.failure_count == 0


@pytest.mark.anyio
async def test_network_failures_become_status_zero():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    breaker = CircuitBreaker()
    transport = _transport(handler, breaker=breaker)

    with pytest.raises(ApiRequestError) as excinfo:
        await transport.get_json("/notifications")

    assert excinfo.value.status_code == 0
    assert breaker.failure_count == 3


@pytest.mark.anyio
async def test_open_breaker_blocks_without_network():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={})

    breaker = CircuitBreaker(failure_threshold=1)
    breaker.record_failure()
    transport = _transport(handler, breaker=breaker)

    with pytest.raises(ApiRequestError) as excinfo:
        await transport.get_json("/notifications")

    assert excinfo.value.status_code == 503
    assert calls == 0


@pytest.mark.anyio
async def test_collapsed_calls_count_as_a_single_success():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"unreadCount": 1})

    breaker = CircuitBreaker()
    for _ in range(4):
        breaker.record_failure()
    transport = _transport(handler, breaker=breaker)

    results = await asyncio.gather(
        *(
            transport.get_json("/notifications/unread-count", key="unread", debounce=0.05)
            for _ in range(4)
        )
    )

    assert results == [{"unreadCount": 1}] * 4
    assert calls == 1
    assert breaker.failure_count == 3


@pytest.mark.anyio
async def test_api_client_maps_endpoints():
    seen: list[tuple[str, str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.url.query.decode()))
        path = request.url.path
        if path == "/notifications":
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "id": 31,
                            "user_id": 9,
                            "type": "contract_expiring",
                            "title": "Contrato próximo a vencer",
                            "message": "Vence en 3 días",
                            "priority": "high",
                            "metadata": {"contract_id": 42, "days_until_expiration": 3},
                            "is_read": False,
                            "created_at": "2030-03-01T09:00:00-03:00",
                        }
                    ],
                    "total": 21,
                    "page": 2,
                    "limit": 20,
                    "totalPages": 2,
                },
            )
        if path == "/notifications/unread-count":
            return httpx.Response(200, json={"unreadCount": 7})
        if path == "/notifications/read-all":
            return httpx.Response(200, json={"updated": 7})
        if path == "/notifications/delete-old":
            return httpx.Response(200, json={"deleted": 2})
        return httpx.Response(404, json={"detail": "no"})

    api = NotificationApiClient(_transport(handler), page_debounce=0, unread_debounce=0)

    page = await api.list(2)
    assert page.total_pages == 2
    assert page.items[0].id == "server-31"
    assert page.items[0].contract_id == 42
    assert await api.unread_count() == 7
    assert await api.mark_all_as_read() == 7
    assert await api.delete_old(15) == 2
    await api.aclose()

    assert seen == [
        ("GET", "/notifications", "page=2&limit=20"),
        ("GET", "/notifications/unread-count", ""),
        ("PATCH", "/notifications/read-all", ""),
        ("DELETE", "/notifications/delete-old", "days=15"),
    ]
