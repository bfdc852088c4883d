"""Bounded retry combinators.

``retry_on_error(backoff, retriable, fn)`` calls *fn* until it succeeds, the
error is not retriable, or *backoff* runs out of steps; the last error is
re-raised. ``DEFAULT_RETRY`` mirrors the API machinery's default: five
attempts roughly 10ms apart with a little jitter.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import TypeVar

import structlog

from kuberecycle.errors import AlreadyExistsError, ConflictError, TransientStoreError

_log = structlog.get_logger(component="retry")

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """Retry schedule.

    Attributes:
        steps:    Maximum number of attempts (at least one is always made).
        duration: Delay before the second attempt, in seconds.
        factor:   Multiplier applied to the delay after every attempt.
        jitter:   Up to ``jitter * delay`` is added to each delay.
        cap:      Upper bound on a single delay, 0 for no cap.
    """

    steps: int = 5
    duration: float = 0.01
    factor: float = 1.0
    jitter: float = 0.1
    cap: float = 0.0

    def delays(self) -> Iterator[float]:
        """Yield the sleep before each retry (``steps - 1`` values)."""
        delay = self.duration
        for _ in range(max(self.steps, 1) - 1):
            current = delay
            if self.cap and current > self.cap:
                current = self.cap
            if self.jitter > 0:
                current += random.uniform(0, self.jitter * current)
            yield current
            delay *= self.factor


DEFAULT_RETRY = Backoff(steps=5, duration=0.01, factor=1.0, jitter=0.1)


async def retry_on_error(
    backoff: Backoff,
    retriable: Callable[[Exception], bool],
    fn: Callable[[], Awaitable[T]],
) -> T:
    """Await ``fn()`` and retry it while it raises a *retriable* error."""
    delays = backoff.delays()
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as exc:
            if not retriable(exc):
                raise
            delay = next(delays, None)
            if delay is None:
                _log.debug("retry_exhausted", attempts=attempt, error=str(exc))
                raise
            _log.debug("retrying", attempt=attempt, delay=round(delay, 4), error=str(exc))
            await asyncio.sleep(delay)
            attempt += 1


def is_conflict(exc: Exception) -> bool:
    return isinstance(exc, ConflictError)


def is_already_exists(exc: Exception) -> bool:
    return isinstance(exc, AlreadyExistsError)


def is_create_retriable(exc: Exception) -> bool:
    """Errors after which a create with a fresh name may safely be re-attempted."""
    return isinstance(exc, AlreadyExistsError | TransientStoreError)


async def retry_on_conflict(backoff: Backoff, fn: Callable[[], Awaitable[T]]) -> T:
    """Retry *fn* while it raises ConflictError."""
    return await retry_on_error(backoff, is_conflict, fn)
