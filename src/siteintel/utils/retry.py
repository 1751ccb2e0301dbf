"""Retry policy value object and a generic async retry combinator."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from ..observability.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Backoff = Callable[[int], float]


def linear_backoff(base_seconds: float) -> Backoff:
    """Delay of ``base_seconds * attempt`` after a failed attempt (1-based)."""

    def _delay(attempt: int) -> float:
        return max(0.0, base_seconds * attempt)

    return _delay


def no_backoff(attempt: int) -> float:
    return 0.0


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: Backoff = no_backoff

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: Callable[[int, BaseException], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``policy.max_attempts`` is spent.

    Only exceptions listed in ``retry_on`` are retried; anything else propagates
    immediately. The last retryable error is re-raised when attempts run out.
    """
    if policy.max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, e)
            delay = policy.backoff(attempt)
            logger.debug("retry_scheduled", attempt=attempt, delay_s=delay, error=str(e))
            if delay > 0:
                await sleep(delay)

    raise RuntimeError("retry loop exited without a result")
