"""Raw discovery reads through the shared ApiClient."""

from __future__ import annotations

from typing import Any

from kuberecycle.discovery.models import APIGroup, APIResourceList
from kuberecycle.kube.rest import group_version_path
from kuberecycle.models.types import GroupVersion


class DiscoveryClient:
    """Reads the discovery documents of the API server.

    Errors are not translated here; the resolver decides how to surface them.
    """

    def __init__(self, rest: Any) -> None:
        self._rest = rest

    async def server_groups(self) -> list[APIGroup]:
        """All API groups, core (legacy) group first, then ``/apis`` in server order."""
        core = await self._rest.get("/api")
        core_versions = tuple(core.get("versions") or ())
        groups = []
        if core_versions:
            groups.append(APIGroup(name="", versions=core_versions, preferred_version=core_versions[0]))
        apis = await self._rest.get("/apis")
        groups.extend(APIGroup.from_dict(g) for g in apis.get("groups") or [])
        return groups

    async def server_resources_for_group_version(self, group_version: str) -> APIResourceList:
        path = group_version_path(GroupVersion.parse(group_version))
        data = await self._rest.get(path)
        resource_list = APIResourceList.from_dict(data)
        if not resource_list.group_version:
            resource_list = APIResourceList(group_version=group_version, resources=resource_list.resources)
        return resource_list
