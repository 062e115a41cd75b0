from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests.exceptions

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Raised for HTTP status codes that are safe to retry (429, 502, 503, 504)."""


@dataclass(frozen=True)
class RetryPolicy:
    name: str
    max_attempts: int
    base_delay: float
    max_delay: float
    backoff_factor: float
    jitter: float
    retryable_exceptions: tuple[type[Exception], ...]
    retryable_status_codes: frozenset[int] = field(default_factory=frozenset)


# Used by the connectivity probe only: lookups inside an estimate are never retried.
RATE_SERVICE_PING = RetryPolicy(
    name="rate-service ping",
    max_attempts=3,
    base_delay=1.0,
    max_delay=8.0,
    backoff_factor=2.0,
    jitter=0.25,
    retryable_exceptions=(
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        RetryableHTTPError,
    ),
    retryable_status_codes=frozenset({429, 502, 503, 504}),
)


def raise_if_retryable(resp: Any, policy: RetryPolicy) -> None:
    """Turn a response whose status the policy considers transient into RetryableHTTPError."""
    if resp.status_code in policy.retryable_status_codes:
        raise RetryableHTTPError(f"{policy.name}: HTTP {resp.status_code}")


def _calc_delay(attempt: int, policy: RetryPolicy) -> float:
    """Exponential backoff capped at max_delay, +/- jitter.

    *attempt* is 0-indexed (0 = delay after first failure).
    """
    delay = min(policy.base_delay * (policy.backoff_factor**attempt), policy.max_delay)
    spread = delay * policy.jitter
    return max(0.0, delay + random.uniform(-spread, spread))


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep_func: Callable[[float], object] | None = None,
) -> T:
    """Execute *func()* with retry per *policy*, re-raising the last error on exhaustion."""
    for attempt in range(policy.max_attempts):
        try:
            return func()
        except policy.retryable_exceptions as exc:
            if attempt == policy.max_attempts - 1:
                raise
            delay = _calc_delay(attempt, policy)
            logger.warning(
                "%s: retry %d/%d after %s (%.1fs delay)",
                policy.name,
                attempt + 1,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            (sleep_func or time.sleep)(delay)
    raise ValueError(f"{policy.name}: max_attempts must be >= 1")
