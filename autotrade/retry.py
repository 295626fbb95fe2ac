"""Bounded retry with exponential backoff for async external calls."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from autotrade.errors import TransientProviderError

logger = logging.getLogger("autotrade.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class ExponentialBackoff:
    """Delay before retry *n* (0-based) is ``base × factor ** n`` seconds."""

    base: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0

    def delay(self, attempt: int) -> float:
        return min(self.max_delay, self.base * (self.factor ** attempt))


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: Optional[ExponentialBackoff] = None,
    retry_on: tuple[type[BaseException], ...] = (TransientProviderError,),
    label: str = "call",
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` up to *max_attempts* times.

    Only exceptions listed in *retry_on* are retried; anything else is
    raised immediately.  After the last attempt the final exception is
    re-raised unchanged.

    Args:
        fn: Zero-argument coroutine factory (called once per attempt).
        max_attempts: Total attempts including the first (>= 1).
        backoff: Delay policy; defaults to 1s doubling.
        retry_on: Exception types considered transient.
        label: Name used in log lines.
        on_retry: Optional hook called with ``(attempt, exc)`` before sleeping.
        sleep: Injected for tests.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    policy = backoff or ExponentialBackoff()

    for attempt in range(max_attempts):
        try:
            return await fn()
        except retry_on as exc:
            if attempt + 1 >= max_attempts:
                logger.error(
                    "%s failed after %d attempt(s): %s", label, max_attempts, exc,
                )
                raise
            delay = policy.delay(attempt)
            logger.warning(
                "%s failed (%s) — retry %d/%d in %.1fs",
                label, exc, attempt + 1, max_attempts - 1, delay,
            )
            if on_retry is not None:
                on_retry(attempt + 1, exc)
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
