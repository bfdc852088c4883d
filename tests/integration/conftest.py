"""Shared fixtures for kube-recycle-bin integration tests.

Provides in-memory stand-ins for the kubernetes-asyncio API classes the
components talk to (CustomObjectsApi, CoreV1Api, AdmissionregistrationV1Api
and the raw REST client) so full flows run without a cluster. The fakes raise
``ApiException`` with a Status body exactly like the real API server does.
"""

from __future__ import annotations

import copy
import json
from types import SimpleNamespace
from typing import Any

import pytest
from kubernetes_asyncio.client.exceptions import ApiException

from kuberecycle.discovery import DiscoveryClient, DiscoveryResolver
from kuberecycle.kube.rest import resource_path
from kuberecycle.models.types import GroupVersionResource
from kuberecycle.retry import Backoff
from kuberecycle.store import RecycleItemStore, RecyclePolicyStore

# No sleeping between retries in tests
FAST_RETRY = Backoff(steps=5, duration=0.0, jitter=0.0)


def api_error(status: int, reason: str) -> ApiException:
    """Build an ApiException carrying a Kubernetes Status body."""
    exc = ApiException(status=status, reason=reason)
    exc.body = json.dumps({"kind": "Status", "status": "Failure", "reason": reason, "code": status})
    return exc


def _labels_match(labels: dict[str, str], selector: str) -> bool:
    for term in filter(None, selector.split(",")):
        key, sep, value = term.partition("=")
        if not sep:
            if key not in labels:
                return False
        elif labels.get(key) != value:
            return False
    return True


class _ResourceVersions:
    def __init__(self) -> None:
        self._counter = 0

    def next(self) -> str:
        self._counter += 1
        return str(self._counter)


# ---------------------------------------------------------------------------
# CustomObjectsApi
# ---------------------------------------------------------------------------


class FakeCustomObjectsApi:
    """Cluster-scoped custom objects keyed by plural and name.

    ``create_errors`` is a list of exceptions raised (in order) by the next
    create calls before the store behaves normally again.
    """

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, dict[str, Any]]] = {}
        self.create_errors: list[Exception] = []
        self.create_calls = 0
        self._rv = _ResourceVersions()

    def _bucket(self, plural: str) -> dict[str, dict[str, Any]]:
        return self.objects.setdefault(plural, {})

    async def create_cluster_custom_object(self, group: str, version: str, plural: str, body: dict[str, Any]) -> dict:
        self.create_calls += 1
        if self.create_errors:
            raise self.create_errors.pop(0)
        name = body["metadata"]["name"]
        bucket = self._bucket(plural)
        if name in bucket:
            raise api_error(409, "AlreadyExists")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._rv.next()
        stored["metadata"]["creationTimestamp"] = "2026-10-19T08:00:00Z"
        bucket[name] = stored
        return copy.deepcopy(stored)

    async def get_cluster_custom_object(self, group: str, version: str, plural: str, name: str) -> dict:
        bucket = self._bucket(plural)
        if name not in bucket:
            raise api_error(404, "NotFound")
        return copy.deepcopy(bucket[name])

    async def list_cluster_custom_object(
        self, group: str, version: str, plural: str, label_selector: str = "", **kwargs: Any
    ) -> dict:
        items = [
            copy.deepcopy(obj)
            for obj in self._bucket(plural).values()
            if _labels_match(obj["metadata"].get("labels") or {}, label_selector)
        ]
        return {"items": items}

    async def replace_cluster_custom_object(
        self, group: str, version: str, plural: str, name: str, body: dict[str, Any]
    ) -> dict:
        bucket = self._bucket(plural)
        if name not in bucket:
            raise api_error(404, "NotFound")
        if body["metadata"].get("resourceVersion") != bucket[name]["metadata"]["resourceVersion"]:
            raise api_error(409, "Conflict")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._rv.next()
        bucket[name] = stored
        return copy.deepcopy(stored)

    async def delete_cluster_custom_object(self, group: str, version: str, plural: str, name: str) -> dict:
        bucket = self._bucket(plural)
        if name not in bucket:
            raise api_error(404, "NotFound")
        del bucket[name]
        return {"kind": "Status", "status": "Success"}


# ---------------------------------------------------------------------------
# AdmissionregistrationV1Api
# ---------------------------------------------------------------------------


class FakeAdmissionApi:
    """ValidatingWebhookConfigurations held as plain dict bodies.

    ``concurrent_writes`` bumps the stored resourceVersion right before that
    many replace calls, simulating another writer winning the race.
    """

    def __init__(self) -> None:
        self.configs: dict[str, dict[str, Any]] = {}
        self.concurrent_writes = 0
        self.replace_calls = 0
        self.delete_calls = 0
        self._rv = _ResourceVersions()

    @staticmethod
    def _view(body: dict[str, Any]) -> SimpleNamespace:
        metadata = body["metadata"]
        return SimpleNamespace(
            metadata=SimpleNamespace(
                name=metadata["name"],
                resource_version=metadata.get("resourceVersion"),
                labels=metadata.get("labels"),
            )
        )

    async def read_validating_webhook_configuration(self, name: str) -> SimpleNamespace:
        if name not in self.configs:
            raise api_error(404, "NotFound")
        return self._view(self.configs[name])

    async def create_validating_webhook_configuration(self, body: dict[str, Any]) -> SimpleNamespace:
        name = body["metadata"]["name"]
        if name in self.configs:
            raise api_error(409, "AlreadyExists")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._rv.next()
        self.configs[name] = stored
        return self._view(stored)

    async def replace_validating_webhook_configuration(self, name: str, body: dict[str, Any]) -> SimpleNamespace:
        self.replace_calls += 1
        if name not in self.configs:
            raise api_error(404, "NotFound")
        if self.concurrent_writes > 0:
            self.concurrent_writes -= 1
            self.configs[name]["metadata"]["resourceVersion"] = self._rv.next()
        if body["metadata"].get("resourceVersion") != self.configs[name]["metadata"]["resourceVersion"]:
            raise api_error(409, "Conflict")
        stored = copy.deepcopy(body)
        stored["metadata"]["resourceVersion"] = self._rv.next()
        self.configs[name] = stored
        return self._view(stored)

    async def delete_validating_webhook_configuration(self, name: str) -> SimpleNamespace:
        self.delete_calls += 1
        if name not in self.configs:
            raise api_error(404, "NotFound")
        del self.configs[name]
        return SimpleNamespace(status="Success")

    async def list_validating_webhook_configuration(self, label_selector: str = "") -> SimpleNamespace:
        items = [
            self._view(body)
            for body in self.configs.values()
            if _labels_match(body["metadata"].get("labels") or {}, label_selector)
        ]
        return SimpleNamespace(items=items)


# ---------------------------------------------------------------------------
# CoreV1Api (secrets only)
# ---------------------------------------------------------------------------


class FakeCoreV1Api:
    def __init__(self) -> None:
        self.secrets: dict[tuple[str, str], dict[str, Any]] = {}
        self.create_calls = 0

    async def read_namespaced_secret(self, name: str, namespace: str) -> SimpleNamespace:
        body = self.secrets.get((namespace, name))
        if body is None:
            raise api_error(404, "NotFound")
        return SimpleNamespace(data=dict(body.get("data") or {}), type=body.get("type"))

    async def create_namespaced_secret(self, namespace: str, body: dict[str, Any]) -> SimpleNamespace:
        self.create_calls += 1
        key = (namespace, body["metadata"]["name"])
        if key in self.secrets:
            raise api_error(409, "AlreadyExists")
        self.secrets[key] = copy.deepcopy(body)
        return SimpleNamespace(data=body.get("data"))


# ---------------------------------------------------------------------------
# Raw REST: discovery documents and object creation
# ---------------------------------------------------------------------------


def _versions(group: str, *versions: str) -> dict[str, Any]:
    return {
        "name": group,
        "versions": [{"groupVersion": f"{group}/{v}", "version": v} for v in versions],
        "preferredVersion": {"groupVersion": f"{group}/{versions[0]}", "version": versions[0]},
    }


def _resource(name: str, kind: str, namespaced: bool, singular: str = "", short: tuple[str, ...] = ()) -> dict:
    return {
        "name": name,
        "kind": kind,
        "namespaced": namespaced,
        "singularName": singular,
        "shortNames": list(short),
        "verbs": ["create", "delete", "get", "list"],
    }


DISCOVERY_DOCUMENTS: dict[str, dict[str, Any]] = {
    "/api": {"kind": "APIVersions", "versions": ["v1"]},
    "/apis": {
        "kind": "APIGroupList",
        "groups": [
            _versions("apps", "v1"),
            _versions("rbac.authorization.k8s.io", "v1"),
            _versions("example.com", "v1", "v1beta1"),
        ],
    },
    "/api/v1": {
        "groupVersion": "v1",
        "resources": [
            _resource("pods", "Pod", True, "pod", ("po",)),
            _resource("pods/log", "Pod", True),
            _resource("services", "Service", True, "service", ("svc",)),
            _resource("namespaces", "Namespace", False, "namespace", ("ns",)),
        ],
    },
    "/apis/apps/v1": {
        "groupVersion": "apps/v1",
        "resources": [
            _resource("deployments", "Deployment", True, "deployment", ("deploy",)),
            _resource("deployments/scale", "Scale", True),
            _resource("statefulsets", "StatefulSet", True, "statefulset", ("sts",)),
        ],
    },
    "/apis/rbac.authorization.k8s.io/v1": {
        "groupVersion": "rbac.authorization.k8s.io/v1",
        "resources": [
            _resource("roles", "Role", True, "role"),
            _resource("clusterroles", "ClusterRole", False, "clusterrole"),
        ],
    },
    "/apis/example.com/v1": {
        "groupVersion": "example.com/v1",
        "resources": [_resource("widgets", "Widget", True, "widget", ("wd",))],
    },
    "/apis/example.com/v1beta1": {
        "groupVersion": "example.com/v1beta1",
        "resources": [
            _resource("widgets", "Widget", True, "widget", ("wd",)),
            _resource("gadgets", "Gadget", False, "gadget"),
        ],
    },
}


class FakeRestClient:
    """Serves discovery documents and records created objects by collection path."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents = copy.deepcopy(documents if documents is not None else DISCOVERY_DOCUMENTS)
        self.created: dict[str, list[dict[str, Any]]] = {}
        self.get_calls: list[str] = []
        self.create_error: Exception | None = None
        self.create_errors: list[Exception] = []
        self.create_calls = 0

    async def get(self, path: str) -> dict[str, Any]:
        self.get_calls.append(path)
        if path not in self.documents:
            raise api_error(404, "NotFound")
        return copy.deepcopy(self.documents[path])

    async def create(self, gvr: GroupVersionResource, namespace: str, obj: dict[str, Any]) -> dict[str, Any]:
        self.create_calls += 1
        if self.create_errors:
            raise self.create_errors.pop(0)
        if self.create_error is not None:
            raise self.create_error
        path = resource_path(gvr, namespace)
        name = obj["metadata"]["name"]
        existing = self.created.setdefault(path, [])
        if any(o["metadata"]["name"] == name for o in existing):
            raise api_error(409, "AlreadyExists")
        existing.append(copy.deepcopy(obj))
        return obj


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def custom_objects() -> FakeCustomObjectsApi:
    return FakeCustomObjectsApi()


@pytest.fixture
def admission_api() -> FakeAdmissionApi:
    return FakeAdmissionApi()


@pytest.fixture
def core_v1() -> FakeCoreV1Api:
    return FakeCoreV1Api()


@pytest.fixture
def rest() -> FakeRestClient:
    return FakeRestClient()


@pytest.fixture
def item_store(custom_objects: FakeCustomObjectsApi) -> RecycleItemStore:
    return RecycleItemStore(custom_objects)


@pytest.fixture
def policy_store(custom_objects: FakeCustomObjectsApi) -> RecyclePolicyStore:
    return RecyclePolicyStore(custom_objects)


@pytest.fixture
def resolver(rest: FakeRestClient) -> DiscoveryResolver:
    return DiscoveryResolver(DiscoveryClient(rest), cache_ttl=30.0)
