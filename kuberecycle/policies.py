"""RecyclePolicy management: create policies from resource references, delete
them, and list records.

Batch operations report per-item results and never stop at the first error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from kuberecycle.errors import RecycleBinError
from kuberecycle.models.recycle import RecycleItem, RecyclePolicy
from kuberecycle.retry import DEFAULT_RETRY, Backoff, is_already_exists, retry_on_error
from kuberecycle.store.queries import RecycleItemQuery, RecyclePolicyQuery

_log = structlog.get_logger(component="policies")


@dataclass(frozen=True)
class PolicyResult:
    """Outcome for one reference or policy name of a batch."""

    subject: str
    policy_name: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


class PolicyManager:
    """Creates and deletes RecyclePolicies.

    Args:
        resolver: DiscoveryResolver turning references into GroupVersionResources.
        policies: RecyclePolicyStore.
        items:    RecycleItemStore, for listing.
        backoff:  Retry schedule for policy-name collisions.
    """

    def __init__(self, resolver: Any, policies: Any, items: Any = None, backoff: Backoff = DEFAULT_RETRY) -> None:
        self._resolver = resolver
        self._policies = policies
        self._items = items
        self._backoff = backoff

    async def _create_policy(self, reference: str, namespaces: tuple[str, ...]) -> RecyclePolicy:
        gvr = await self._resolver.resolve_preferred(reference)

        async def _create() -> RecyclePolicy:
            return await self._policies.create(RecyclePolicy.new(gvr, namespaces))

        return await retry_on_error(self._backoff, is_already_exists, _create)

    async def recycle(self, references: list[str], namespaces: list[str] | tuple[str, ...] = ()) -> list[PolicyResult]:
        """Create one RecyclePolicy per reference, limited to *namespaces* (empty for all)."""
        results: list[PolicyResult] = []
        for reference in references:
            try:
                policy = await self._create_policy(reference, tuple(namespaces))
            except RecycleBinError as exc:
                _log.error("recycle_policy_create_failed", reference=reference, error=str(exc))
                results.append(PolicyResult(subject=reference, error=str(exc)))
                continue
            _log.info("recycle_policy_created", reference=reference, policy=policy.name)
            results.append(PolicyResult(subject=reference, policy_name=policy.name))
        return results

    async def delete(self, names: list[str]) -> list[PolicyResult]:
        results: list[PolicyResult] = []
        for name in names:
            try:
                await self._policies.delete(name)
            except RecycleBinError as exc:
                _log.error("recycle_policy_delete_failed", policy=name, error=str(exc))
                results.append(PolicyResult(subject=name, policy_name=name, error=str(exc)))
                continue
            _log.info("recycle_policy_deleted", policy=name)
            results.append(PolicyResult(subject=name, policy_name=name))
        return results

    async def list_policies(self, query: RecyclePolicyQuery | None = None) -> list[RecyclePolicy]:
        return await self._policies.list(query)

    async def list_items(self, query: RecycleItemQuery | None = None) -> list[RecycleItem]:
        if self._items is None:
            raise RecycleBinError("no RecycleItem store configured")
        return await self._items.list(query)
