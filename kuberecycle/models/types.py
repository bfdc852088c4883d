"""Kubernetes type coordinates (group, version, kind, resource)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GroupVersion:
    group: str
    version: str

    def __str__(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @classmethod
    def parse(cls, value: str) -> GroupVersion:
        """Parse ``group/version`` (or bare ``version`` for the core group)."""
        if not value or value.count("/") > 1:
            raise ValueError(f"unexpected GroupVersion string: {value!r}")
        group, _, version = value.rpartition("/")
        if not version:
            raise ValueError(f"unexpected GroupVersion string: {value!r}")
        return cls(group=group, version=version)


@dataclass(frozen=True)
class GroupResource:
    group: str
    resource: str

    def __str__(self) -> str:
        if not self.group:
            return self.resource
        return f"{self.resource}.{self.group}"


@dataclass(frozen=True)
class GroupVersionResource:
    """Canonical REST coordinates of a resource type."""

    group: str
    version: str
    resource: str

    @property
    def group_version(self) -> GroupVersion:
        return GroupVersion(self.group, self.version)

    @property
    def group_resource(self) -> GroupResource:
        return GroupResource(self.group, self.resource)

    def __str__(self) -> str:
        return f"{self.group_version}, Resource={self.resource}"


@dataclass(frozen=True)
class GroupVersionKind:
    group: str
    version: str
    kind: str

    @property
    def group_version(self) -> GroupVersion:
        return GroupVersion(self.group, self.version)

    def __str__(self) -> str:
        return f"{self.group_version}, Kind={self.kind}"


def parse_resource_arg(arg: str) -> tuple[GroupVersionResource | None, GroupResource]:
    """Split a dotted resource reference into its possible readings.

    ``deployments``             -> (None, GroupResource("", "deployments"))
    ``deployments.apps``        -> (None, GroupResource("apps", "deployments"))
    ``deployments.v1.apps``     -> (GVR("apps", "v1", "deployments"),
                                    GroupResource("v1.apps", "deployments"))

    With three or more segments the second segment may be a version or part
    of the group, so both readings are returned.
    """
    parts = arg.split(".")
    resource = parts[0]
    gvr: GroupVersionResource | None = None
    if len(parts) >= 3:
        gvr = GroupVersionResource(group=".".join(parts[2:]), version=parts[1], resource=resource)
    group = ".".join(parts[1:])
    return gvr, GroupResource(group=group, resource=resource)
