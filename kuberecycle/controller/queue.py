"""Keyed work queue for reconciliation.

A key is held by at most one worker at a time. Adding a key that is already
queued is a no-op; adding a key that is being processed marks it dirty and
it is queued again once the current pass finishes. Different keys are
processed concurrently by up to ``workers`` tasks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

_log = structlog.get_logger(component="controller.queue")


class WorkQueue:
    """Deduplicating, per-key serialized queue drained by a pool of workers.

    Args:
        handler: Coroutine function called with each key. Returning a float
                 requeues the key after that many seconds; ``None`` means done.
        workers: Number of concurrent worker tasks.
    """

    def __init__(
        self,
        handler: Callable[[str], Awaitable[float | None]],
        workers: int = 4,
        error_requeue_after: float = 10.0,
    ) -> None:
        self._handler = handler
        self._workers = max(workers, 1)
        self._error_requeue_after = error_requeue_after
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._queued: set[str] = set()
        self._processing: set[str] = set()
        self._dirty: set[str] = set()
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: list[asyncio.Task[None]] = []

    def __len__(self) -> int:
        return len(self._queued)

    def add(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._queued:
            return
        self._queued.add(key)
        self._queue.put_nowait(key)

    def add_after(self, key: str, delay: float) -> None:
        """Queue *key* once *delay* seconds have passed."""
        if key in self._timers:
            return
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)

    def _fire(self, key: str) -> None:
        self._timers.pop(key, None)
        self.add(key)

    async def start(self) -> None:
        for i in range(self._workers):
            self._tasks.append(asyncio.create_task(self._worker(), name=f"reconcile-worker-{i}"))

    async def stop(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def join(self) -> None:
        """Wait until every queued key has been processed."""
        await self._queue.join()

    async def _worker(self) -> None:
        while True:
            key = await self._queue.get()
            self._queued.discard(key)
            self._processing.add(key)
            try:
                requeue_after = await self._handler(key)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                _log.error("work_item_failed", key=key, error=str(exc))
                requeue_after = self._error_requeue_after

            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self.add(key)
            elif requeue_after is not None:
                self.add_after(key, requeue_after)
            self._queue.task_done()
