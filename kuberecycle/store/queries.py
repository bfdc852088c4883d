"""Typed label queries over the RecycleItem / RecyclePolicy label vocabulary.

The label keys are a compatibility surface shared with every collaborator that
lists records, so selectors are only ever built here.
"""

from __future__ import annotations

from dataclasses import dataclass

from kuberecycle.models.naming import sanitize_label_value
from kuberecycle.models.recycle import (
    LABEL_OBJECT_GR,
    LABEL_OBJECT_NAME,
    LABEL_OBJECT_NAMESPACE,
    LABEL_TARGET_GR,
    RecycleItem,
    RecyclePolicy,
)


def _selector(terms: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in sorted(terms.items()))


@dataclass(frozen=True)
class RecycleItemQuery:
    """Filter RecycleItems by the captured object's namespace, group-resource or name.

    Values are given in their natural form (``dev``, ``deployments.apps``)
    and sanitized exactly as they were when the record was labeled.
    """

    namespace: str = ""
    group_resource: str = ""
    name: str = ""

    def label_selector(self) -> str:
        terms: dict[str, str] = {}
        if self.namespace:
            terms[LABEL_OBJECT_NAMESPACE] = sanitize_label_value(self.namespace)
        if self.group_resource:
            terms[LABEL_OBJECT_GR] = sanitize_label_value(self.group_resource)
        if self.name:
            terms[LABEL_OBJECT_NAME] = sanitize_label_value(self.name)
        return _selector(terms)

    def matches(self, item: RecycleItem) -> bool:
        """True when the captured object of *item* satisfies this query."""
        if self.namespace and item.object.namespace != self.namespace:
            return False
        if self.group_resource and str(item.object.group_resource) != self.group_resource:
            return False
        return not (self.name and item.object.name != self.name)


@dataclass(frozen=True)
class RecyclePolicyQuery:
    """Filter RecyclePolicies by target group-resource."""

    group_resource: str = ""

    def label_selector(self) -> str:
        terms: dict[str, str] = {}
        if self.group_resource:
            terms[LABEL_TARGET_GR] = sanitize_label_value(self.group_resource)
        return _selector(terms)

    def matches(self, policy: RecyclePolicy) -> bool:
        return not self.group_resource or str(policy.target.group_resource) == self.group_resource
