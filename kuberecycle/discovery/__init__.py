"""Discovery resolver for free-form resource references.

Submodules:
    models   -- APIGroup, APIResource, APIResourceList discovery documents.
    client   -- DiscoveryClient: raw reads of /api, /apis and group-version lists.
    resolver -- DiscoveryResolver: preferred-resource resolution with a TTL cache.
"""

from kuberecycle.discovery.client import DiscoveryClient
from kuberecycle.discovery.models import APIGroup, APIResource, APIResourceList
from kuberecycle.discovery.resolver import DiscoveryResolver

__all__ = [
    "APIGroup",
    "APIResource",
    "APIResourceList",
    "DiscoveryClient",
    "DiscoveryResolver",
]
