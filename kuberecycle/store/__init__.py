"""Recycling store: CRUD over RecycleItem and RecyclePolicy custom resources.

Every operation maps to exactly one API server call. Listing is filtered on
the server through typed label queries; nothing is scanned client side.
"""

from kuberecycle.store.client import RecycleItemStore, RecyclePolicyStore
from kuberecycle.store.queries import RecycleItemQuery, RecyclePolicyQuery

__all__ = [
    "RecycleItemQuery",
    "RecycleItemStore",
    "RecyclePolicyQuery",
    "RecyclePolicyStore",
]
