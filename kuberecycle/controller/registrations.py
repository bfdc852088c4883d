"""ValidatingWebhookConfiguration access with translated errors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from kuberecycle.kube.errors import API_ERRORS, translate_error
from kuberecycle.models.recycle import LABEL_RECYCLE_POLICY


@dataclass(frozen=True)
class RegistrationRef:
    """Identity and concurrency token of a live registration."""

    name: str
    resource_version: str
    policy_name: str = ""


def _ref(obj: Any) -> RegistrationRef:
    metadata = obj.metadata
    labels = metadata.labels or {}
    return RegistrationRef(
        name=metadata.name,
        resource_version=metadata.resource_version or "",
        policy_name=labels.get(LABEL_RECYCLE_POLICY, ""),
    )


class RegistrationClient:
    """Thin adapter over ``AdmissionregistrationV1Api``.

    Raises the StoreError subclasses from ``kuberecycle.errors``.
    """

    def __init__(self, admission_v1: Any) -> None:
        self._api = admission_v1

    async def get(self, name: str) -> RegistrationRef:
        try:
            obj = await self._api.read_validating_webhook_configuration(name)
        except API_ERRORS as exc:
            raise translate_error(exc, f"get webhook [{name}]") from exc
        return _ref(obj)

    async def create(self, body: dict[str, Any]) -> None:
        name = body["metadata"]["name"]
        try:
            await self._api.create_validating_webhook_configuration(body)
        except API_ERRORS as exc:
            raise translate_error(exc, f"create webhook [{name}]") from exc

    async def replace(self, name: str, body: dict[str, Any]) -> None:
        """Replace *name*; ``body.metadata.resourceVersion`` is the concurrency token."""
        try:
            await self._api.replace_validating_webhook_configuration(name, body)
        except API_ERRORS as exc:
            raise translate_error(exc, f"update webhook [{name}]") from exc

    async def delete(self, name: str) -> None:
        try:
            await self._api.delete_validating_webhook_configuration(name)
        except API_ERRORS as exc:
            raise translate_error(exc, f"delete webhook [{name}]") from exc

    async def list_managed(self) -> list[RegistrationRef]:
        """Every registration carrying the recycle-policy label."""
        try:
            result = await self._api.list_validating_webhook_configuration(label_selector=LABEL_RECYCLE_POLICY)
        except API_ERRORS as exc:
            raise translate_error(exc, "list webhooks") from exc
        return [_ref(item) for item in result.items or []]
