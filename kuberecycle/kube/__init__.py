"""Kubernetes client plumbing.

Submodules:
    clients -- KubeClients: the process-wide set of API handles, created once
               at startup and closed on shutdown.
    errors  -- Translation of ApiException and transport errors into the
               kube-recycle-bin taxonomy.
    rest    -- RestClient: raw JSON reads and writes for arbitrary resource types.
"""

from kuberecycle.kube.clients import KubeClients
from kuberecycle.kube.errors import API_ERRORS, translate_api_exception, translate_error
from kuberecycle.kube.rest import RestClient, resource_path

__all__ = [
    "API_ERRORS",
    "KubeClients",
    "RestClient",
    "resource_path",
    "translate_api_exception",
    "translate_error",
]
