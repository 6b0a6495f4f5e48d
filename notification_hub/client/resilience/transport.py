"""HTTP transport that routes every call through the resilience chain."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .circuit_breaker import CircuitBreaker
from .errors import ApiRequestError
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"La solicitud falló con estado {response.status_code}"


class ResilientTransport:
    """Wrap an ``httpx.AsyncClient`` with breaker, rate limiter and retries.

    Per call: the breaker gate runs first, then rate limiter admission, then
    the network attempt with retries. Retryable failed attempts count against
    the breaker; answered requests, including non-retryable 4xx, count as
    successes.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        breaker: CircuitBreaker | None = None,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.breaker = breaker or CircuitBreaker()
        self.limiter = limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def request(
        self,
        method: str,
        url: str,
        *,
        key: str | None = None,
        debounce: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        self.breaker.check()

        async def attempt() -> httpx.Response:
            return await self._send_once(method, url, **kwargs)

        async def governed() -> httpx.Response:
            response = await run_with_retry(
                attempt,
                self.retry_policy,
                sleep=self._sleep,
                on_error=self._record_failed_attempt,
            )
            # once per network execution, however many callers were collapsed
            self.breaker.record_success()
            return response

        return await self.limiter.submit(
            key or f"{method.upper()}:{url}", governed, debounce
        )

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return (await self.request("GET", url, **kwargs)).json()

    async def patch_json(self, url: str, **kwargs: Any) -> Any:
        return (await self.request("PATCH", url, **kwargs)).json()

    async def delete_json(self, url: str, **kwargs: Any) -> Any:
        return (await self.request("DELETE", url, **kwargs)).json()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise ApiRequestError(f"Error de red: {exc}", status_code=0) from exc
        if response.status_code >= 400:
            raise ApiRequestError(
                _error_message(response),
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def _record_failed_attempt(self, error: ApiRequestError, attempt: int) -> None:
        if error.retryable:
            self.breaker.record_failure()
        else:
            self.breaker.record_success()


__all__ = ["ResilientTransport"]
