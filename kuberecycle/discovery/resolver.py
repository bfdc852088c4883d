"""Resolution of resource references against live discovery metadata.

A reference may be a plural name (``deployments``), a singular name
(``deployment``), a short name (``deploy``) or a dotted form pinning the
group (``deployments.apps``) or group and version (``deployments.v1.apps``).

Discovery documents are cached for ``cache_ttl`` seconds. Every discovery
failure surfaces as ResolutionError; nothing is silently defaulted.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kuberecycle.discovery.models import APIGroup, APIResource, APIResourceList
from kuberecycle.errors import ResolutionError
from kuberecycle.models.types import (
    GroupResource,
    GroupVersion,
    GroupVersionKind,
    GroupVersionResource,
    parse_resource_arg,
)

_log = structlog.get_logger(component="discovery.resolver")

_DISCOVERY_ERRORS = (ApiException, aiohttp.ClientError, TimeoutError, OSError, ValueError)


class DiscoveryResolver:
    """Maps resource references to canonical GroupVersionResources.

    Args:
        client:    DiscoveryClient (or any object with ``server_groups`` and
                   ``server_resources_for_group_version`` coroutines).
        cache_ttl: Seconds a discovery document stays cached; 0 disables caching.
    """

    def __init__(self, client: Any, cache_ttl: float = 30.0) -> None:
        self._client = client
        self._cache_ttl = cache_ttl
        self._preferred: tuple[float, list[APIResourceList]] | None = None
        self._group_versions: dict[str, tuple[float, APIResourceList]] = {}

    def invalidate(self) -> None:
        """Drop every cached discovery document."""
        self._preferred = None
        self._group_versions.clear()

    def _fresh(self, fetched_at: float) -> bool:
        return self._cache_ttl > 0 and time.monotonic() - fetched_at < self._cache_ttl

    # ------------------------------------------------------------------
    # Discovery reads
    # ------------------------------------------------------------------

    async def _resources_for(self, group_version: str) -> APIResourceList:
        cached = self._group_versions.get(group_version)
        if cached is not None and self._fresh(cached[0]):
            return cached[1]
        try:
            resource_list = await self._client.server_resources_for_group_version(group_version)
        except _DISCOVERY_ERRORS as exc:
            raise ResolutionError(f"discovery of {group_version} failed: {exc}") from exc
        self._group_versions[group_version] = (time.monotonic(), resource_list)
        return resource_list

    async def _groups(self) -> list[APIGroup]:
        try:
            return await self._client.server_groups()
        except _DISCOVERY_ERRORS as exc:
            raise ResolutionError(f"discovery of API groups failed: {exc}") from exc

    async def server_preferred_resources(self) -> list[APIResourceList]:
        """One APIResourceList per group-version, in server order.

        Within a group a resource is attributed to the preferred version when
        that version serves it, otherwise to the first version that does.
        Subresources are left out.
        """
        if self._preferred is not None and self._fresh(self._preferred[0]):
            return self._preferred[1]

        groups = await self._groups()
        group_versions = [str(GroupVersion(g.name, v)) for g in groups for v in g.versions]
        fetched = await asyncio.gather(*(self._resources_for(gv) for gv in group_versions))
        by_gv = dict(zip(group_versions, fetched, strict=True))

        result: list[APIResourceList] = []
        for group in groups:
            chosen: dict[str, str] = {}
            for version in group.versions:
                resource_list = by_gv[str(GroupVersion(group.name, version))]
                for resource in resource_list.resources:
                    if resource.is_subresource:
                        continue
                    if resource.name in chosen and version != group.preferred_version:
                        continue
                    chosen[resource.name] = version

            for version in group.versions:
                gv = str(GroupVersion(group.name, version))
                selected = tuple(
                    r for r in by_gv[gv].resources if not r.is_subresource and chosen.get(r.name) == version
                )
                if selected:
                    result.append(APIResourceList(group_version=gv, resources=selected))

        self._preferred = (time.monotonic(), result)
        _log.debug("discovery_refreshed", group_versions=len(result))
        return result

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_preferred(self, reference: str) -> GroupVersionResource:
        """Resolve *reference* to the preferred GroupVersionResource.

        The first match in server order wins. A pinned version in the dotted
        form selects the group; the returned version is the one discovery
        prefers for that resource.

        Raises:
            ResolutionError: nothing matches, or discovery failed.
        """
        gvr, gr = parse_resource_arg(reference)
        for resource_list in await self.server_preferred_resources():
            gv = resource_list.gv
            if not _group_matches(gv.group, gr, gvr):
                continue
            for resource in resource_list.resources:
                if resource.matches(gr.resource):
                    return GroupVersionResource(group=gv.group, version=gv.version, resource=resource.name)
        raise ResolutionError(f"can not find preferred GroupVersionResource for resource {reference}")

    async def is_namespaced(self, gvr: GroupVersionResource) -> bool:
        """Return the namespaced flag of *gvr* from its own group-version list.

        Raises:
            ResolutionError: the resource is not served in that group-version.
        """
        resource_list = await self._resources_for(str(gvr.group_version))
        resource = resource_list.find(gvr.resource)
        if resource is None:
            raise ResolutionError(f"can not assert if resource {gvr.group_resource} is namespaced")
        return resource.namespaced

    async def list_all_group_resources(self) -> list[str]:
        """Every ``resource.group`` known to the cluster, for completion/listing."""
        result = []
        for resource_list in await self.server_preferred_resources():
            group = resource_list.gv.group
            result.extend(str(GroupResource(group, r.name)) for r in resource_list.resources)
        return result

    async def kinds_for(self, reference: str) -> list[GroupVersionKind]:
        """Every GroupVersionKind whose plural, singular or short name is *reference*."""
        result = []
        for resource_list in await self.server_preferred_resources():
            gv = resource_list.gv
            result.extend(
                GroupVersionKind(gv.group, gv.version, r.kind) for r in resource_list.resources if r.matches(reference)
            )
        return result

    async def resource_for_kind(self, gvk: GroupVersionKind) -> GroupVersionResource:
        """Map *gvk* to the resource serving it in the same group-version.

        Raises:
            ResolutionError: no resource of that kind in the group-version.
        """
        resource_list = await self._resources_for(str(gvk.group_version))
        resource: APIResource | None = next(
            (r for r in resource_list.resources if r.kind == gvk.kind and not r.is_subresource),
            None,
        )
        if resource is None:
            raise ResolutionError(f"no resource found for kind {gvk}")
        return GroupVersionResource(group=gvk.group, version=gvk.version, resource=resource.name)


def _group_matches(group: str, gr: GroupResource, gvr: GroupVersionResource | None) -> bool:
    """True when *group* satisfies a group pinned by either reading of the reference."""
    if not gr.group:
        return True
    if group == gr.group:
        return True
    return gvr is not None and group == gvr.group
