"""Recreation of recycled objects from their RecycleItems.

The captured payload is posted back with ``metadata.resourceVersion``
removed. The RecycleItem is deleted only after the object was created; when
that cleanup fails the restore still counts as done and the failure is
reported on the result.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import structlog

from kuberecycle.errors import RecycleBinError, StoreError
from kuberecycle.kube.errors import API_ERRORS, translate_error
from kuberecycle.models.recycle import RecycleItem
from kuberecycle.observability.metrics import restore_total
from kuberecycle.store.queries import RecycleItemQuery

_log = structlog.get_logger(component="restore")


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of restoring one RecycleItem.

    Attributes:
        item_name:      Name of the RecycleItem.
        object_key:     ``namespace/name`` (or ``name``) of the recreated object.
        group_resource: ``resource.group`` of the recreated object.
        restored:       The object was created.
        item_deleted:   The RecycleItem was removed afterwards.
        error:          Why restoring or the cleanup failed, if it did.
    """

    item_name: str
    object_key: str = ""
    group_resource: str = ""
    restored: bool = False
    item_deleted: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.restored


class RestoreService:
    """Restores RecycleItems through the raw REST client.

    Args:
        items: RecycleItemStore.
        rest:  RestClient used to create objects of arbitrary types.
    """

    def __init__(self, items: Any, rest: Any) -> None:
        self._items = items
        self._rest = rest

    async def restore(self, item_name: str) -> RestoreResult:
        """Recreate the object captured by *item_name*, then delete the item.

        Raises:
            NotFoundError: no RecycleItem with that name.
            StoreError:    the object could not be created.
            RecycleBinError: the captured payload is unusable.
        """
        item = await self._items.get(item_name)
        return await self._restore_item(item)

    async def _restore_item(self, item: RecycleItem) -> RestoreResult:
        obj = item.object
        log = _log.bind(recycle_item=item.name, object=obj.key, resource=str(obj.group_resource))

        try:
            payload = obj.unstructured()
        except ValueError as exc:
            restore_total.labels(result="invalid_payload").inc()
            raise RecycleBinError(f"RecycleItem [{item.name}] holds an unusable payload: {exc}") from exc

        try:
            await self._rest.create(obj.gvr, obj.namespace, payload)
        except API_ERRORS as exc:
            restore_total.labels(result="error").inc()
            raise translate_error(exc, f"restore {obj.group_resource} [{obj.key}]") from exc
        log.info("object_restored")
        restore_total.labels(result="restored").inc()

        result = RestoreResult(
            item_name=item.name,
            object_key=obj.key,
            group_resource=str(obj.group_resource),
            restored=True,
        )
        try:
            await self._items.delete(item.name)
        except StoreError as exc:
            log.error("recycle_item_cleanup_failed", error=str(exc))
            return replace(result, error=f"restored but not deleted: {exc}")
        log.info("recycle_item_deleted_after_restore")
        return replace(result, item_deleted=True)

    async def restore_many(self, item_names: list[str], query: RecycleItemQuery | None = None) -> list[RestoreResult]:
        """Restore each of *item_names*, skipping items that do not match *query*.

        Failures are reported per item; processing always continues.
        """
        results: list[RestoreResult] = []
        for name in item_names:
            try:
                item = await self._items.get(name)
                if query is not None and not query.matches(item):
                    results.append(RestoreResult(item_name=name, error="does not match the object filter"))
                    continue
                results.append(await self._restore_item(item))
            except RecycleBinError as exc:
                _log.error("restore_failed", recycle_item=name, error=str(exc))
                results.append(RestoreResult(item_name=name, error=str(exc)))
        return results
