"""Errors raised by the client when the notification API cannot answer."""

from __future__ import annotations

from typing import Any

RETRYABLE_STATUS_CODES = frozenset({0, 429, 502, 503, 504})
CIRCUIT_OPEN_MESSAGE = (
    "Servidor temporalmente sobrecargado. Intenta nuevamente en unos segundos."
)


class ApiRequestError(Exception):
    """A request that failed; ``status_code`` is ``0`` when no response arrived."""

    def __init__(self, message: str, status_code: int = 0, *, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES

    def __repr__(self) -> str:
        return f"ApiRequestError(status_code={self.status_code}, message={self.message!r})"


def service_unavailable() -> ApiRequestError:
    """Error returned without touching the network while the breaker is open."""

    return ApiRequestError(CIRCUIT_OPEN_MESSAGE, status_code=503)


__all__ = [
    "CIRCUIT_OPEN_MESSAGE",
    "RETRYABLE_STATUS_CODES",
    "ApiRequestError",
    "service_unavailable",
]
