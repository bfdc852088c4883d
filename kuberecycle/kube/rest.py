"""Raw JSON access to arbitrary API paths.

Discovery documents and objects of types unknown at build time have no typed
API class, so they are read and written as plain dicts through the shared
ApiClient.
"""

from __future__ import annotations

from typing import Any

from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

from kuberecycle.models.types import GroupVersion, GroupVersionResource

_JSON_HEADERS = {"Accept": "application/json", "Content-Type": "application/json"}
_AUTH = ["BearerToken"]


def group_version_path(gv: GroupVersion) -> str:
    """``/api/v1`` for the core group, ``/apis/<group>/<version>`` otherwise."""
    if not gv.group:
        return f"/api/{gv.version}"
    return f"/apis/{gv.group}/{gv.version}"


def resource_path(gvr: GroupVersionResource, namespace: str = "") -> str:
    """Collection path for *gvr*, scoped to *namespace* when given."""
    base = group_version_path(gvr.group_version)
    if namespace:
        return f"{base}/namespaces/{namespace}/{gvr.resource}"
    return f"{base}/{gvr.resource}"


class RestClient:
    """GET and POST plain JSON through a kubernetes-asyncio ApiClient.

    Non-2xx responses raise ``ApiException`` exactly like the typed APIs.
    """

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self._api_client = api_client

    async def get(self, path: str) -> dict[str, Any]:
        return await self._api_client.call_api(
            path,
            "GET",
            header_params=dict(_JSON_HEADERS),
            response_types_map={200: "object"},
            auth_settings=_AUTH,
            _return_http_data_only=True,
        )

    async def post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._api_client.call_api(
            path,
            "POST",
            header_params=dict(_JSON_HEADERS),
            body=body,
            response_types_map={200: "object", 201: "object", 202: "object"},
            auth_settings=_AUTH,
            _return_http_data_only=True,
        )

    async def create(self, gvr: GroupVersionResource, namespace: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Create *obj* as a *gvr* in *namespace* ("" for cluster scope)."""
        return await self.post(resource_path(gvr, namespace), obj)
