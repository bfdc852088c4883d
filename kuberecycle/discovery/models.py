"""Discovery documents as returned by ``/api``, ``/apis`` and ``/apis/<g>/<v>``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kuberecycle.models.types import GroupVersion


@dataclass(frozen=True)
class APIGroup:
    """An API group with its served versions; the core group has ``name == ""``."""

    name: str
    versions: tuple[str, ...]
    preferred_version: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> APIGroup:
        versions = tuple(v.get("version", "") for v in data.get("versions") or [])
        preferred = (data.get("preferredVersion") or {}).get("version", "")
        if not preferred and versions:
            preferred = versions[0]
        return cls(name=data.get("name", ""), versions=versions, preferred_version=preferred)


@dataclass(frozen=True)
class APIResource:
    name: str
    kind: str
    namespaced: bool
    singular_name: str = ""
    short_names: tuple[str, ...] = ()
    verbs: tuple[str, ...] = ()

    @property
    def is_subresource(self) -> bool:
        return "/" in self.name

    def matches(self, reference: str) -> bool:
        """True when *reference* is this resource's plural, singular or short name."""
        return reference in (self.name, self.singular_name) or reference in self.short_names

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> APIResource:
        return cls(
            name=data.get("name", ""),
            kind=data.get("kind", ""),
            namespaced=bool(data.get("namespaced", False)),
            singular_name=data.get("singularName", ""),
            short_names=tuple(data.get("shortNames") or ()),
            verbs=tuple(data.get("verbs") or ()),
        )


@dataclass(frozen=True)
class APIResourceList:
    group_version: str
    resources: tuple[APIResource, ...] = field(default_factory=tuple)

    @property
    def gv(self) -> GroupVersion:
        return GroupVersion.parse(self.group_version)

    def find(self, name: str) -> APIResource | None:
        for resource in self.resources:
            if resource.name == name:
                return resource
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> APIResourceList:
        return cls(
            group_version=data.get("groupVersion", ""),
            resources=tuple(APIResource.from_dict(r) for r in data.get("resources") or []),
        )
