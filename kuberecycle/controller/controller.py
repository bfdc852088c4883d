"""RecyclePolicy controller: watch, periodic resync and the reconcile workers.

Every RecyclePolicy event enqueues the policy name. The resync pass enqueues
every existing policy plus the owner of every labeled registration, so
registrations drifted by hand are rewritten and orphans whose policy vanished
while nobody was watching are deleted.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from kubernetes_asyncio import watch  # type: ignore[import-untyped]

from kuberecycle.controller.compiler import policy_name_for
from kuberecycle.controller.queue import WorkQueue
from kuberecycle.models.config import ControllerConfig
from kuberecycle.models.recycle import GROUP, RECYCLE_POLICY_PLURAL, VERSION

_log = structlog.get_logger(component="controller")

_WATCH_TIMEOUT_SECONDS = 300
_WATCH_BACKOFF_SECONDS = 5.0


class PolicyController:
    """Drives PolicyReconciler from RecyclePolicy watch events and resyncs.

    Args:
        reconciler:     PolicyReconciler.
        custom_objects: kubernetes-asyncio ``CustomObjectsApi`` used for the watch.
        policies:       RecyclePolicyStore, listed on resync.
        registrations:  RegistrationClient, listed on resync.
        config:         ControllerConfig.
    """

    def __init__(
        self,
        reconciler: Any,
        custom_objects: Any,
        policies: Any,
        registrations: Any,
        config: ControllerConfig | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._custom_objects = custom_objects
        self._policies = policies
        self._registrations = registrations
        self._config = config or ControllerConfig()
        self.queue = WorkQueue(
            self._reconcile,
            workers=self._config.workers,
            error_requeue_after=self._config.requeue_after_seconds,
        )
        self._tasks: list[asyncio.Task[None]] = []

    async def _reconcile(self, name: str) -> float | None:
        result = await self._reconciler.reconcile(name)
        return result.requeue_after

    async def start(self) -> None:
        await self.queue.start()
        self._tasks.append(asyncio.create_task(self._watch_loop(), name="policy-watch"))
        self._tasks.append(asyncio.create_task(self._resync_loop(), name="policy-resync"))
        _log.info("policy_controller_started", workers=self._config.workers)

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.queue.stop()
        _log.info("policy_controller_stopped")

    # ------------------------------------------------------------------
    # Event sources
    # ------------------------------------------------------------------

    async def resync(self) -> int:
        """Enqueue every policy and every policy owning a labeled registration."""
        names: set[str] = set()
        for policy in await self._policies.list():
            names.add(policy.name)
        for ref in await self._registrations.list_managed():
            # the label value may be a sanitized form of the policy name
            owner = policy_name_for(ref.name) or ref.policy_name
            if owner:
                names.add(owner)
        for name in sorted(names):
            self.queue.add(name)
        return len(names)

    async def _resync_loop(self) -> None:
        while True:
            try:
                count = await self.resync()
                _log.debug("policy_resync", enqueued=count)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                _log.warning("policy_resync_failed", error=str(exc))
            await asyncio.sleep(self._config.resync_period_seconds)

    def handle_event(self, event: dict[str, Any]) -> None:
        """Enqueue the policy named by a watch *event*."""
        obj = event.get("object")
        if isinstance(obj, dict):
            name = (obj.get("metadata") or {}).get("name", "")
        else:
            name = getattr(getattr(obj, "metadata", None), "name", "") or ""
        if name:
            _log.debug("policy_event", type=event.get("type"), policy=name)
            self.queue.add(name)

    async def _watch_loop(self) -> None:
        while True:
            try:
                async with watch.Watch() as w:
                    async for event in w.stream(
                        self._custom_objects.list_cluster_custom_object,
                        GROUP,
                        VERSION,
                        RECYCLE_POLICY_PLURAL,
                        timeout_seconds=_WATCH_TIMEOUT_SECONDS,
                    ):
                        self.handle_event(event)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                _log.warning("policy_watch_interrupted", error=str(exc), retry_in=_WATCH_BACKOFF_SECONDS)
                await asyncio.sleep(_WATCH_BACKOFF_SECONDS)
