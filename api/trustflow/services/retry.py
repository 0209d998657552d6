"""Bounded retry with a fixed delay and a fallback value.

`retry_with_fallback` runs an async operation up to `attempts` times. An
attempt fails when it raises one of `retry_on` or when `accept` rejects its
result (a stale read, for instance). Between attempts it sleeps for `delay`
seconds. Once attempts are exhausted it awaits `fallback()` and returns that
instead of raising.

Exceptions outside `retry_on` propagate immediately. Cancelling the awaiting
task stops the loop at its next await and has no effect on writes an earlier
attempt already committed.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

import structlog

from trustflow.exceptions import TransientStoreError
from trustflow.metrics import retry_attempts

log = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T
    attempts: int
    fell_back: bool
    last_error: Optional[BaseException] = None


async def retry_with_fallback(
    operation: Callable[[], Awaitable[T]],
    *,
    fallback: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (TransientStoreError,),
    accept: Optional[Callable[[T], bool]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    name: str = "operation",
) -> RetryOutcome[T]:
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
        except retry_on as exc:
            last_error = exc
            retry_attempts.labels(cause="error").inc()
            log.warning(
                "retry_attempt_failed",
                operation=name,
                attempt=attempt,
                max_attempts=attempts,
                error_type=type(exc).__name__,
            )
        else:
            if accept is None or accept(result):
                return RetryOutcome(value=result, attempts=attempt, fell_back=False)
            last_error = None
            retry_attempts.labels(cause="rejected").inc()
            log.info(
                "retry_attempt_rejected",
                operation=name,
                attempt=attempt,
                max_attempts=attempts,
            )

        if attempt < attempts:
            await sleep(delay)

    log.warning("retry_exhausted", operation=name, max_attempts=attempts)
    value = await fallback()
    return RetryOutcome(value=value, attempts=attempts, fell_back=True, last_error=last_error)
