"""Level-triggered reconciliation of one RecyclePolicy name.

Policy present  -> create the registration, or replace it wholesale with the
                   freshly compiled body, re-fetching the resourceVersion on
                   conflict.
Policy absent   -> delete the registration; already gone counts as done.

Any failure that survives the local retries is turned into a requeue.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

import structlog

from kuberecycle.controller.compiler import compile_registration, registration_name
from kuberecycle.errors import AlreadyExistsError, ConflictError, NotFoundError, RecycleBinError
from kuberecycle.models.config import WebhookConfig
from kuberecycle.models.recycle import RecyclePolicy
from kuberecycle.observability.metrics import reconcile_total
from kuberecycle.retry import DEFAULT_RETRY, Backoff, retry_on_conflict

_log = structlog.get_logger(component="controller.reconciler")

DEFAULT_REQUEUE_AFTER = 10.0


@dataclass(frozen=True)
class ReconcileResult:
    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


def _with_token(body: dict[str, Any], resource_version: str) -> dict[str, Any]:
    out = copy.deepcopy(body)
    out["metadata"]["resourceVersion"] = resource_version
    return out


class PolicyReconciler:
    """Converges the registration of a policy to its compiled form.

    Args:
        policies:      RecyclePolicyStore.
        registrations: RegistrationClient.
        trust:         TrustMaterialProvider supplying the CA bundle.
        service:       WebhookConfig of the interceptor endpoint.
        backoff:       Retry schedule for conflicting updates.
        requeue_after: Delay before a failed reconciliation is retried.
    """

    def __init__(
        self,
        policies: Any,
        registrations: Any,
        trust: Any,
        service: WebhookConfig,
        backoff: Backoff = DEFAULT_RETRY,
        requeue_after: float = DEFAULT_REQUEUE_AFTER,
    ) -> None:
        self._policies = policies
        self._registrations = registrations
        self._trust = trust
        self._service = service
        self._backoff = backoff
        self._requeue_after = requeue_after

    async def reconcile(self, name: str) -> ReconcileResult:
        log = _log.bind(policy=name)
        log.info("reconciling_policy")

        action = "apply"
        try:
            try:
                policy = await self._policies.get(name)
            except NotFoundError:
                action = "delete"
                await self._teardown(name)
                log.info("registration_reclaimed", registration=registration_name(name))
            else:
                action = await self._apply(policy)
                log.info("registration_applied", registration=registration_name(name), action=action)
        except RecycleBinError as exc:
            reconcile_total.labels(action=action, result="error").inc()
            log.error("reconcile_failed", action=action, error=str(exc), requeue_after=self._requeue_after)
            return ReconcileResult(requeue_after=self._requeue_after)

        reconcile_total.labels(action=action, result="success").inc()
        return ReconcileResult()

    async def _teardown(self, policy_name: str) -> None:
        try:
            await self._registrations.delete(registration_name(policy_name))
        except NotFoundError:
            pass

    async def _apply(self, policy: RecyclePolicy) -> str:
        ca_bundle = await self._trust.ca_bundle()
        desired = compile_registration(policy, ca_bundle, self._service)
        name = desired["metadata"]["name"]

        try:
            current = await self._registrations.get(name)
        except NotFoundError:
            try:
                await self._registrations.create(desired)
                return "create"
            except AlreadyExistsError:
                # created concurrently; converge it through the update path
                current = await self._registrations.get(name)

        token = current.resource_version

        async def _replace() -> None:
            nonlocal token
            try:
                await self._registrations.replace(name, _with_token(desired, token))
            except ConflictError:
                token = (await self._registrations.get(name)).resource_version
                raise

        await retry_on_conflict(self._backoff, _replace)
        return "update"
