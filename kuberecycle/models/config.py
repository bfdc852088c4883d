"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class WebhookConfig:
    """Admission webhook (interceptor) configuration."""

    namespace: str = "krb-system"
    service_name: str = "krb-webhook"
    path: str = "/webhook-recycle"
    port: int = 443
    tls_secret_name: str = "krb-webhook-tls"
    cert_file: str = "/tmp/krb-webhook/tls.crt"
    key_file: str = "/tmp/krb-webhook/tls.key"
    timeout_seconds: int = 5
    max_object_bytes: int = 5 * 1024 * 1024
    max_request_bytes: int = 10 * 1024 * 1024

    @property
    def dns_name(self) -> str:
        """In-cluster DNS name the certificate is issued for."""
        return f"{self.service_name}.{self.namespace}.svc"


@dataclass
class ControllerConfig:
    """RecyclePolicy reconciler configuration."""

    enabled: bool = True
    requeue_after_seconds: float = 10.0
    resync_period_seconds: float = 300.0
    workers: int = 4


@dataclass
class DiscoveryConfig:
    """Discovery cache configuration."""

    cache_ttl_seconds: float = 30.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubeRecycleConfig:
    """Top-level kube-recycle-bin configuration."""

    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    log: LogConfig = field(default_factory=LogConfig)
