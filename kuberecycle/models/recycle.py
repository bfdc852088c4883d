"""RecycleItem and RecyclePolicy custom resources.

Both kinds live in the ``krb.wcrum.dev/v1`` API group and are cluster scoped.
Instances are immutable values; ``clone()`` returns a copy that shares no
mutable state with its source.
"""

from __future__ import annotations

import base64
import json
import secrets
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

import yaml

from kuberecycle.models.naming import (
    MAX_LABEL_VALUE_LENGTH,
    MAX_NAME_LENGTH,
    sanitize_label_value,
    sanitize_name,
)
from kuberecycle.models.types import (
    GroupResource,
    GroupVersion,
    GroupVersionKind,
    GroupVersionResource,
)

GROUP = "krb.wcrum.dev"
VERSION = "v1"
API_VERSION = f"{GROUP}/{VERSION}"

RECYCLE_ITEM_KIND = "RecycleItem"
RECYCLE_ITEM_PLURAL = "recycleitems"
RECYCLE_POLICY_KIND = "RecyclePolicy"
RECYCLE_POLICY_PLURAL = "recyclepolicies"

# Label vocabulary. Collaborators select records by these exact keys.
LABEL_OBJECT_NAME = f"{GROUP}/object-name"
LABEL_OBJECT_NAMESPACE = f"{GROUP}/object-namespace"
LABEL_OBJECT_GR = f"{GROUP}/object-gr"
LABEL_RECYCLED_AT = f"{GROUP}/recycled-at"
LABEL_TARGET_GR = f"{GROUP}/target-gr"
LABEL_TARGET_NAMESPACE_PREFIX = f"{GROUP}/target-namespace-"
LABEL_RECYCLE_POLICY = f"{GROUP}/recycle-policy"

NAMESPACE_ALL = ""

# Same alphabet as the API machinery's random name suffixes (no vowels).
_SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
SUFFIX_LENGTH = 8


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass(frozen=True)
class RecycledObject:
    """Snapshot of a deleted object as carried by the admission request.

    ``raw`` is the object's JSON, including ``metadata.resourceVersion``. The
    interceptor re-serializes the decoded ``oldObject`` compactly, so the
    bytes are semantically equal to what the API server sent but may differ
    in escaping and number formatting. ``raw`` is never modified;
    ``unstructured()`` strips the resourceVersion on a decoded copy before
    recreation.
    """

    group: str
    version: str
    kind: str
    resource: str
    name: str
    raw: bytes
    namespace: str = ""

    @property
    def key(self) -> str:
        if not self.namespace:
            return self.name
        return f"{self.namespace}/{self.name}"

    @property
    def group_resource(self) -> GroupResource:
        return GroupResource(self.group, self.resource)

    @property
    def group_version(self) -> GroupVersion:
        return GroupVersion(self.group, self.version)

    @property
    def gvr(self) -> GroupVersionResource:
        return GroupVersionResource(self.group, self.version, self.resource)

    @property
    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind(self.group, self.version, self.kind)

    def unstructured(self) -> dict[str, Any]:
        """Decode the payload and drop ``metadata.resourceVersion``.

        Raises:
            ValueError: if the payload is not a JSON object.
        """
        obj = json.loads(self.raw)
        if not isinstance(obj, dict):
            raise ValueError(f"recycled payload for {self.key} is not a JSON object")
        metadata = obj.get("metadata")
        if isinstance(metadata, dict):
            metadata.pop("resourceVersion", None)
        return obj

    def json(self) -> str:
        return self.raw.decode("utf-8")

    def indented_json(self) -> str:
        return json.dumps(json.loads(self.raw), indent=2)

    def yaml(self) -> str:
        return yaml.safe_dump(json.loads(self.raw), sort_keys=False)

    def clone(self) -> RecycledObject:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "version": self.version,
            "kind": self.kind,
            "resource": self.resource,
            "name": self.name,
            "raw": base64.b64encode(self.raw).decode("ascii"),
        }
        if self.group:
            out["group"] = self.group
        if self.namespace:
            out["namespace"] = self.namespace
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecycledObject:
        return cls(
            group=data.get("group", ""),
            version=data.get("version", ""),
            kind=data.get("kind", ""),
            resource=data.get("resource", ""),
            namespace=data.get("namespace", ""),
            name=data.get("name", ""),
            raw=base64.b64decode(data.get("raw", "")),
        )


@dataclass(frozen=True)
class RecycleItem:
    """Durable, uniquely named wrapper around one RecycledObject."""

    name: str
    object: RecycledObject
    labels: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    creation_timestamp: datetime | None = None

    @classmethod
    def new(cls, obj: RecycledObject, now: datetime | None = None) -> RecycleItem:
        """Build a RecycleItem for *obj* with a fresh random name suffix."""
        captured_at = now or datetime.now(tz=UTC)
        base = sanitize_name(obj.name, max_length=MAX_NAME_LENGTH - SUFFIX_LENGTH - 1)
        labels = {
            LABEL_OBJECT_NAME: sanitize_label_value(obj.name),
            LABEL_OBJECT_GR: sanitize_label_value(str(obj.group_resource)),
            LABEL_RECYCLED_AT: str(int(captured_at.timestamp())),
        }
        if obj.namespace:
            labels[LABEL_OBJECT_NAMESPACE] = sanitize_label_value(obj.namespace)
        return cls(name=f"{base}-{random_suffix()}", object=obj, labels=labels)

    @property
    def recycled_at(self) -> datetime | None:
        value = self.labels.get(LABEL_RECYCLED_AT)
        if not value or not value.isdigit():
            return None
        return datetime.fromtimestamp(int(value), tz=UTC)

    def clone(self) -> RecycleItem:
        return replace(self, object=self.object.clone(), labels=dict(self.labels))

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": self.name, "labels": dict(self.labels)}
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        return {
            "apiVersion": API_VERSION,
            "kind": RECYCLE_ITEM_KIND,
            "metadata": metadata,
            "object": self.object.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecycleItem:
        metadata = data.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            labels=dict(metadata.get("labels") or {}),
            resource_version=metadata.get("resourceVersion", ""),
            creation_timestamp=_parse_timestamp(metadata.get("creationTimestamp")),
            object=RecycledObject.from_dict(data.get("object") or {}),
        )


@dataclass(frozen=True)
class RecycleTarget:
    group: str = ""
    resource: str = ""
    namespaces: tuple[str, ...] = ()

    @property
    def group_resource(self) -> GroupResource:
        return GroupResource(self.group, self.resource)

    @property
    def all_namespaces(self) -> bool:
        """True when the target covers every namespace."""
        return not self.namespaces or NAMESPACE_ALL in self.namespaces or "*" in self.namespaces


@dataclass(frozen=True)
class RecyclePolicy:
    """Declarative rule naming which resource type to recycle, and where."""

    name: str
    target: RecycleTarget
    labels: dict[str, str] = field(default_factory=dict)
    resource_version: str = ""
    creation_timestamp: datetime | None = None

    @classmethod
    def new(cls, gvr: GroupVersionResource, namespaces: list[str] | tuple[str, ...] = ()) -> RecyclePolicy:
        """Build a policy for *gvr*, limited to *namespaces* (empty means all)."""
        targets = tuple(ns for ns in namespaces if ns != NAMESPACE_ALL)
        labels = {LABEL_TARGET_GR: sanitize_label_value(str(gvr.group_resource))}
        for ns in targets:
            key = LABEL_TARGET_NAMESPACE_PREFIX + ns
            # the name part of a label key is limited to 63 characters
            if len(key) - len(GROUP) - 1 <= MAX_LABEL_VALUE_LENGTH:
                labels[key] = "true"
        # policy names are also used as label values on the compiled registration
        name = sanitize_name(f"recycle-{gvr.resource}", max_length=MAX_LABEL_VALUE_LENGTH - SUFFIX_LENGTH - 1)
        return cls(
            name=f"{name}-{random_suffix()}",
            labels=labels,
            target=RecycleTarget(group=gvr.group, resource=gvr.resource, namespaces=targets),
        )

    def clone(self) -> RecyclePolicy:
        return replace(self, labels=dict(self.labels), target=replace(self.target))

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": self.name, "labels": dict(self.labels)}
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        target: dict[str, Any] = {}
        if self.target.group:
            target["group"] = self.target.group
        if self.target.resource:
            target["resource"] = self.target.resource
        if self.target.namespaces:
            target["namespaces"] = list(self.target.namespaces)
        return {
            "apiVersion": API_VERSION,
            "kind": RECYCLE_POLICY_KIND,
            "metadata": metadata,
            "target": target,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RecyclePolicy:
        metadata = data.get("metadata") or {}
        target = data.get("target") or {}
        return cls(
            name=metadata.get("name", ""),
            labels=dict(metadata.get("labels") or {}),
            resource_version=metadata.get("resourceVersion", ""),
            creation_timestamp=_parse_timestamp(metadata.get("creationTimestamp")),
            target=RecycleTarget(
                group=target.get("group", ""),
                resource=target.get("resource", ""),
                namespaces=tuple(target.get("namespaces") or ()),
            ),
        )
