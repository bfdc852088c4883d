"""Core data structures for kube-recycle-bin."""

from kuberecycle.models.config import KubeRecycleConfig
from kuberecycle.models.naming import sanitize_label_value, sanitize_name
from kuberecycle.models.recycle import (
    RecycledObject,
    RecycleItem,
    RecyclePolicy,
    RecycleTarget,
)
from kuberecycle.models.types import (
    GroupResource,
    GroupVersion,
    GroupVersionKind,
    GroupVersionResource,
)

__all__ = [
    "GroupResource",
    "GroupVersion",
    "GroupVersionKind",
    "GroupVersionResource",
    "KubeRecycleConfig",
    "RecycleItem",
    "RecyclePolicy",
    "RecycleTarget",
    "RecycledObject",
    "sanitize_label_value",
    "sanitize_name",
]
