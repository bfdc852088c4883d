"""Integration tests for DiscoveryResolver against canned discovery documents.

Covers: plural/singular/short-name and dotted references, preferred-version
selection per resource, namespaced checks, kind lookups, caching, and the
surfacing of every discovery failure as ResolutionError.
"""

from __future__ import annotations

import pytest

from kuberecycle.discovery import DiscoveryClient, DiscoveryResolver
from kuberecycle.errors import ResolutionError
from kuberecycle.models.types import GroupVersionKind, GroupVersionResource

from .conftest import FakeRestClient, api_error

# ---------------------------------------------------------------------------
# resolve_preferred
# ---------------------------------------------------------------------------


class TestResolvePreferred:
    async def test_group_qualified_reference(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("deployments.apps")
        assert gvr == GroupVersionResource(group="apps", version="v1", resource="deployments")

    async def test_short_name_resolves_to_core_pods(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("po")
        assert gvr == GroupVersionResource(group="", version="v1", resource="pods")

    async def test_singular_name(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("deployment")
        assert gvr.group_resource.resource == "deployments"
        assert gvr.group == "apps"

    async def test_plural_name_outside_core(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("roles")
        assert gvr == GroupVersionResource(group="rbac.authorization.k8s.io", version="v1", resource="roles")

    async def test_version_pinned_reference_selects_group(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("deployments.v1.apps")
        assert gvr.group == "apps"
        assert gvr.resource == "deployments"

    async def test_preferred_version_wins_when_served(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("widgets.example.com")
        assert gvr.version == "v1"

    async def test_resource_only_in_older_version_uses_that_version(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resolve_preferred("gadgets")
        assert gvr == GroupVersionResource(group="example.com", version="v1beta1", resource="gadgets")

    async def test_subresources_are_never_matched(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError):
            await resolver.resolve_preferred("pods/log")

    async def test_unknown_reference_raises(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError, match="frobnicators"):
            await resolver.resolve_preferred("frobnicators")

    async def test_wrong_group_pin_raises(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError):
            await resolver.resolve_preferred("deployments.batch")


# ---------------------------------------------------------------------------
# Namespaced checks and kind lookups
# ---------------------------------------------------------------------------


class TestTypeMetadata:
    async def test_is_namespaced(self, resolver: DiscoveryResolver) -> None:
        assert await resolver.is_namespaced(GroupVersionResource("apps", "v1", "deployments")) is True
        assert await resolver.is_namespaced(GroupVersionResource("", "v1", "namespaces")) is False

    async def test_is_namespaced_unknown_resource_raises(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError):
            await resolver.is_namespaced(GroupVersionResource("apps", "v1", "widgets"))

    async def test_is_namespaced_unknown_group_version_raises(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError):
            await resolver.is_namespaced(GroupVersionResource("batch", "v1", "jobs"))

    async def test_kinds_for(self, resolver: DiscoveryResolver) -> None:
        kinds = await resolver.kinds_for("deploy")
        assert kinds == [GroupVersionKind("apps", "v1", "Deployment")]

    async def test_resource_for_kind(self, resolver: DiscoveryResolver) -> None:
        gvr = await resolver.resource_for_kind(GroupVersionKind("rbac.authorization.k8s.io", "v1", "ClusterRole"))
        assert gvr.resource == "clusterroles"

    async def test_resource_for_unknown_kind_raises(self, resolver: DiscoveryResolver) -> None:
        with pytest.raises(ResolutionError):
            await resolver.resource_for_kind(GroupVersionKind("apps", "v1", "CronTab"))

    async def test_list_all_group_resources(self, resolver: DiscoveryResolver) -> None:
        names = await resolver.list_all_group_resources()
        assert names[0] == "pods"
        assert "deployments.apps" in names
        assert "gadgets.example.com" in names
        assert "pods/log" not in names
        assert len(names) == len(set(names))


# ---------------------------------------------------------------------------
# Caching and failures
# ---------------------------------------------------------------------------


class TestCachingAndFailures:
    async def test_preferred_resources_are_cached(self, rest: FakeRestClient, resolver: DiscoveryResolver) -> None:
        await resolver.resolve_preferred("po")
        calls = len(rest.get_calls)
        await resolver.resolve_preferred("deployments.apps")
        assert len(rest.get_calls) == calls

    async def test_invalidate_forces_refetch(self, rest: FakeRestClient, resolver: DiscoveryResolver) -> None:
        await resolver.resolve_preferred("po")
        calls = len(rest.get_calls)
        resolver.invalidate()
        await resolver.resolve_preferred("po")
        assert len(rest.get_calls) > calls

    async def test_zero_ttl_disables_cache(self, rest: FakeRestClient) -> None:
        resolver = DiscoveryResolver(DiscoveryClient(rest), cache_ttl=0)
        await resolver.resolve_preferred("po")
        calls = len(rest.get_calls)
        await resolver.resolve_preferred("po")
        assert len(rest.get_calls) == 2 * calls

    async def test_new_resources_show_up_after_invalidate(
        self, rest: FakeRestClient, resolver: DiscoveryResolver
    ) -> None:
        with pytest.raises(ResolutionError):
            await resolver.resolve_preferred("crontabs")

        rest.documents["/apis/example.com/v1"]["resources"].append(
            {"name": "crontabs", "kind": "CronTab", "namespaced": True, "singularName": "crontab"}
        )
        resolver.invalidate()
        gvr = await resolver.resolve_preferred("crontabs")
        assert gvr == GroupVersionResource("example.com", "v1", "crontabs")

    async def test_group_list_failure_raises_resolution_error(self) -> None:
        class _Broken(FakeRestClient):
            async def get(self, path: str) -> dict:
                raise api_error(503, "ServiceUnavailable")

        resolver = DiscoveryResolver(DiscoveryClient(_Broken()))
        with pytest.raises(ResolutionError):
            await resolver.resolve_preferred("po")

    async def test_group_version_failure_raises_resolution_error(self, rest: FakeRestClient) -> None:
        del rest.documents["/apis/apps/v1"]
        resolver = DiscoveryResolver(DiscoveryClient(rest))
        with pytest.raises(ResolutionError):
            await resolver.resolve_preferred("deployments.apps")
