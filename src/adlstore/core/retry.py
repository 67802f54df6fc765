"""Retry policies for calls to the store.

A policy is an immutable value. The dispatcher passes the number of retries
already made on every decision, so nothing is carried between calls and one
policy instance may be shared freely.
"""

from __future__ import annotations

from time import sleep
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class RetryPolicy(Protocol):
    """Protocol for retry policies."""

    def backoff(self, attempt: int, status_code: int, error: Optional[BaseException]) -> Optional[float]:
        """Return seconds to wait before retrying, or None to give up.
        `attempt` is the number of retries already made for this call.
        """
        ...

    def should_retry(self, attempt: int, status_code: int, error: Optional[BaseException]) -> bool:
        """Wait for the backoff (if any) and report whether to retry."""
        ...


def _is_success(status_code: int) -> bool:
    return 100 <= status_code < 300


def _is_permanent(status_code: int) -> bool:
    return (300 <= status_code < 500 and status_code != 408) or status_code in (501, 505)


class _SleepingPolicy:
    def should_retry(self, attempt: int, status_code: int, error: Optional[BaseException]) -> bool:
        wait = self.backoff(attempt, status_code, error)
        if wait is None:
            return False
        if wait > 0:
            sleep(wait)
        return True


@dataclass(frozen=True)
class NoRetryPolicy(_SleepingPolicy):
    """Never retry. Used where a retry could repeat a non-idempotent effect."""

    def backoff(self, attempt: int, status_code: int, error: Optional[BaseException]) -> Optional[float]:
        return None


@dataclass(frozen=True)
class DefaultRetryPolicy(_SleepingPolicy):
    """Linear backoff on transport errors and 5xx responses."""

    max_retries: int = 2
    linear_interval: float = 1.0

    def backoff(self, attempt: int, status_code: int, error: Optional[BaseException]) -> Optional[float]:
        if error is None and (_is_success(status_code) or _is_permanent(status_code)):
            return None
        if error is not None or status_code >= 500:
            if attempt < self.max_retries:
                return self.linear_interval
        return None


@dataclass(frozen=True)
class ExponentialOnThrottlePolicy(DefaultRetryPolicy):
    """Like DefaultRetryPolicy, but throttling (429/503) backs off exponentially."""

    exponential_interval: float = 1.0

    def backoff(self, attempt: int, status_code: int, error: Optional[BaseException]) -> Optional[float]:
        if error is None and status_code in (429, 503):
            if attempt < self.max_retries:
                return self.exponential_interval * (2 ** attempt)
            return None
        return super().backoff(attempt, status_code, error)
