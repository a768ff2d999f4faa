"""Retry helpers shared by the segment uploader and manifest builder."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import structlog

log = structlog.get_logger(__name__)

__all__ = [
    "MANIFEST_RETRY_POLICY",
    "RetryPolicy",
    "SEGMENT_BACKOFF_SECONDS",
    "Sleep",
    "retry_async",
]

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

SEGMENT_BACKOFF_SECONDS = 60.0


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff configuration.

    The wait after the *n*-th failed attempt (1-based) is
    ``base_delay * multiplier ** n`` capped at ``max_delay``.
    """

    max_attempts: int = 5
    base_delay: float = 0.05
    multiplier: float = 3.0
    max_delay: float = 30.0
    jitter: float = 0.0

    def delay_for(self, attempt: int) -> float:
        delay = self.base_delay * (self.multiplier ** max(attempt, 0))
        delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(0.0, self.jitter)
        return delay


MANIFEST_RETRY_POLICY = RetryPolicy()


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Await *func* until it succeeds or *policy* runs out of attempts.

    The last exception is re-raised once every attempt has failed.
    """

    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                log.error(
                    "swift.retry_exhausted",
                    operation=description,
                    attempts=attempt,
                    error=str(exc),
                )
                raise
            wait_time = policy.delay_for(attempt)
            log.warning(
                "swift.retry_pending",
                operation=description,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                wait=round(wait_time, 3),
                error=str(exc),
            )
            await sleep(wait_time)
