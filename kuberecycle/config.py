"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kuberecycle.models.config import (
    ControllerConfig,
    DiscoveryConfig,
    KubeRecycleConfig,
    LogConfig,
    WebhookConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KRB_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_path(value: str) -> str:
    if not value.startswith("/"):
        raise ValueError(f"Invalid webhook path: {value}. Must start with '/'")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> KubeRecycleConfig:
    """Load configuration from KRB_* environment variables."""
    return KubeRecycleConfig(
        webhook=WebhookConfig(
            namespace=_env("WEBHOOK_NAMESPACE", "krb-system"),
            service_name=_env("WEBHOOK_SERVICE_NAME", "krb-webhook"),
            path=_validate_path(_env("WEBHOOK_PATH", "/webhook-recycle")),
            port=_env_int("WEBHOOK_PORT", 443, min_val=1, max_val=65535),
            tls_secret_name=_env("WEBHOOK_TLS_SECRET", "krb-webhook-tls"),
            cert_file=_env("WEBHOOK_CERT_FILE", "/tmp/krb-webhook/tls.crt"),
            key_file=_env("WEBHOOK_KEY_FILE", "/tmp/krb-webhook/tls.key"),
            timeout_seconds=_env_int("WEBHOOK_TIMEOUT_SECONDS", 5, min_val=1, max_val=30),
            max_object_bytes=_env_int("MAX_OBJECT_BYTES", 5 * 1024 * 1024, min_val=1),
            max_request_bytes=_env_int("MAX_REQUEST_BYTES", 10 * 1024 * 1024, min_val=1),
        ),
        controller=ControllerConfig(
            enabled=_env_bool("CONTROLLER_ENABLED", True),
            requeue_after_seconds=_env_float("REQUEUE_AFTER", 10.0, min_val=1.0),
            resync_period_seconds=_env_float("RESYNC_PERIOD", 300.0, min_val=10.0),
            workers=_env_int("RECONCILE_WORKERS", 4, min_val=1, max_val=32),
        ),
        discovery=DiscoveryConfig(
            cache_ttl_seconds=_env_float("DISCOVERY_CACHE_TTL", 30.0, min_val=0.0),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
