"""Process-wide Kubernetes API handles.

A single KubeClients instance is created by the application bootstrap and
passed to every component that talks to the API server. It owns the shared
``ApiClient`` connection pool and closes it on shutdown.
"""

from __future__ import annotations

import structlog
from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]
from kubernetes_asyncio import config as k8s_config  # type: ignore[import-untyped]

from kuberecycle.kube.rest import RestClient

_log = structlog.get_logger(component="kube.clients")


class KubeClients:
    """Typed API groups sharing one ``ApiClient``."""

    def __init__(self, api_client: k8s_client.ApiClient) -> None:
        self.api_client = api_client
        self.core_v1 = k8s_client.CoreV1Api(api_client)
        self.custom_objects = k8s_client.CustomObjectsApi(api_client)
        self.admission_v1 = k8s_client.AdmissionregistrationV1Api(api_client)
        self.rest = RestClient(api_client)

    @classmethod
    async def connect(cls) -> KubeClients:
        """Load in-cluster config, falling back to kubeconfig, and build the clients."""
        try:
            # load_incluster_config() is synchronous in kubernetes-asyncio
            k8s_config.load_incluster_config()
            _log.info("k8s client configured from in-cluster service account")
        except k8s_config.ConfigException:
            # load_kube_config() is async in kubernetes-asyncio
            await k8s_config.load_kube_config()
            _log.info("k8s client configured from kubeconfig")
        return cls(k8s_client.ApiClient())

    async def close(self) -> None:
        """Close the ApiClient connection pool."""
        await self.api_client.close()
