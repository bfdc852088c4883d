"""CustomObjectsApi-backed stores for RecycleItem and RecyclePolicy."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from kuberecycle.kube.errors import API_ERRORS, translate_error
from kuberecycle.models.recycle import (
    GROUP,
    RECYCLE_ITEM_KIND,
    RECYCLE_ITEM_PLURAL,
    RECYCLE_POLICY_KIND,
    RECYCLE_POLICY_PLURAL,
    VERSION,
    RecycleItem,
    RecyclePolicy,
)
from kuberecycle.store.queries import RecycleItemQuery, RecyclePolicyQuery

T = TypeVar("T", RecycleItem, RecyclePolicy)


class _ClusterResourceStore(Generic[T]):
    """Single-call CRUD over one cluster-scoped custom resource kind.

    Raises the StoreError subclasses from ``kuberecycle.errors``:
    NotFoundError, AlreadyExistsError, ConflictError, TransientStoreError.
    """

    kind: str
    plural: str

    def __init__(self, custom_objects: Any) -> None:
        self._api = custom_objects

    def _decode(self, data: dict[str, Any]) -> T:
        raise NotImplementedError

    def _error(self, exc: Exception, verb: str, name: str = "") -> Exception:
        subject = f"{verb} {self.kind}"
        if name:
            subject = f"{subject} [{name}]"
        return translate_error(exc, subject)

    async def create(self, obj: T) -> T:
        try:
            data = await self._api.create_cluster_custom_object(GROUP, VERSION, self.plural, obj.to_dict())
        except API_ERRORS as exc:
            raise self._error(exc, "create", obj.name) from exc
        return self._decode(data)

    async def get(self, name: str) -> T:
        try:
            data = await self._api.get_cluster_custom_object(GROUP, VERSION, self.plural, name)
        except API_ERRORS as exc:
            raise self._error(exc, "get", name) from exc
        return self._decode(data)

    async def _list(self, label_selector: str) -> list[T]:
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            data = await self._api.list_cluster_custom_object(GROUP, VERSION, self.plural, **kwargs)
        except API_ERRORS as exc:
            raise self._error(exc, "list") from exc
        return [self._decode(item) for item in data.get("items") or []]

    async def update(self, obj: T) -> T:
        """Replace *obj*; its ``resource_version`` is the concurrency token."""
        try:
            data = await self._api.replace_cluster_custom_object(GROUP, VERSION, self.plural, obj.name, obj.to_dict())
        except API_ERRORS as exc:
            raise self._error(exc, "update", obj.name) from exc
        return self._decode(data)

    async def delete(self, name: str) -> None:
        try:
            await self._api.delete_cluster_custom_object(GROUP, VERSION, self.plural, name)
        except API_ERRORS as exc:
            raise self._error(exc, "delete", name) from exc


class RecycleItemStore(_ClusterResourceStore[RecycleItem]):
    kind = RECYCLE_ITEM_KIND
    plural = RECYCLE_ITEM_PLURAL

    def _decode(self, data: dict[str, Any]) -> RecycleItem:
        return RecycleItem.from_dict(data)

    async def list(self, query: RecycleItemQuery | None = None) -> list[RecycleItem]:
        return await self._list((query or RecycleItemQuery()).label_selector())


class RecyclePolicyStore(_ClusterResourceStore[RecyclePolicy]):
    kind = RECYCLE_POLICY_KIND
    plural = RECYCLE_POLICY_PLURAL

    def _decode(self, data: dict[str, Any]) -> RecyclePolicy:
        return RecyclePolicy.from_dict(data)

    async def list(self, query: RecyclePolicyQuery | None = None) -> list[RecyclePolicy]:
        return await self._list((query or RecyclePolicyQuery()).label_selector())
