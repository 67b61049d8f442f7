"""
Utilities
=========

Retry helpers shared by the classifier pipeline and the GitHub client.

`call_with_retry` runs a single-attempt operation under a `RetryPolicy`
(bounded attempts, exponential backoff with jitter and a delay cap). The
`retry` decorator is the method-level variant used by API clients that keep
their retry budget on ``self.settings``.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Callable, Type, TypeVar

import structlog

log = structlog.get_logger(__name__)
T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.2

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.jitter:
            delay *= random.uniform(1 - self.jitter, 1 + self.jitter)
        return min(delay, self.max_delay)


def _always(_exc: Exception) -> bool:
    return True


def call_with_retry(
    func: Callable[..., T],
    *args,
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool] = _always,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> T:
    """
    Call ``func`` until it succeeds, the error is not retryable, or the
    attempts run out. The last error is re-raised unchanged.

    Args:
        func: The single-attempt operation.
        policy: Attempt budget and backoff shape.
        should_retry: Predicate deciding whether a caught error is transient.
        retryable_exceptions: Exception types that are considered at all.
            Anything else propagates on the first attempt.
        sleep: Injectable sleep function (primarily for tests).
    """
    if policy.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    name = getattr(func, "__qualname__", repr(func))
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except retryable_exceptions as e:
            if not should_retry(e):
                log.debug("Non-retryable error", func=name, error=str(e))
                raise
            if attempt == policy.max_attempts:
                log.warning(
                    "Giving up after retries",
                    func=name,
                    attempts=attempt,
                    error=str(e),
                )
                raise
            delay = policy.delay_for(attempt)
            log.info(
                "Retrying after transient error",
                func=name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay=round(delay, 2),
                error=str(e),
            )
            sleep(delay)
    # Unreachable: the loop either returns or raises
    raise RuntimeError("Retry loop exited unexpectedly.")


def retry(
    retryable_exceptions: tuple[Type[Exception], ...],
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    A decorator that retries a method call on specific exceptions.

    The decorated object must expose ``self.settings`` with ``MAX_RETRIES``
    and ``MAX_RETRY_BACKOFF``.

    Args:
        retryable_exceptions: A tuple of exception types that should trigger a retry.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self, *args, **kwargs) -> T:
            settings = self.settings
            policy = RetryPolicy(
                max_attempts=settings.MAX_RETRIES,
                base_delay=1.0,
                multiplier=2.0,
                max_delay=settings.MAX_RETRY_BACKOFF,
            )
            return call_with_retry(
                func,
                self,
                *args,
                policy=policy,
                retryable_exceptions=retryable_exceptions,
                sleep=_sleep,
                **kwargs,
            )

        return wrapper

    return decorator


def _sleep(delay: float) -> None:
    time.sleep(delay)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )
