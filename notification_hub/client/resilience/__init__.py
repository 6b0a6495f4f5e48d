"""Rate limiting, retries and circuit breaking for API calls."""

from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    CIRCUIT_OPEN_MESSAGE,
    RETRYABLE_STATUS_CODES,
    ApiRequestError,
    service_unavailable,
)
from .rate_limiter import RateLimiter
from .retry import RetryPolicy, run_with_retry
from .transport import ResilientTransport

__all__ = [
    "CIRCUIT_OPEN_MESSAGE",
    "RETRYABLE_STATUS_CODES",
    "ApiRequestError",
    "CircuitBreaker",
    "CircuitState",
    "RateLimiter",
    "ResilientTransport",
    "RetryPolicy",
    "run_with_retry",
    "service_unavailable",
]
