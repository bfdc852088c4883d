"""Pure compilation of a RecyclePolicy into a ValidatingWebhookConfiguration.

The output is a deterministic function of the policy, the CA bundle and the
webhook service settings: reconciliation replaces the live registration with
it wholesale, which is how drift gets corrected.
"""

from __future__ import annotations

import base64
from typing import Any

from kuberecycle.models.config import WebhookConfig
from kuberecycle.models.naming import sanitize_label_value
from kuberecycle.models.recycle import LABEL_RECYCLE_POLICY, RecyclePolicy

REGISTRATION_PREFIX = "krb-webhook-"
NAMESPACE_NAME_LABEL = "kubernetes.io/metadata.name"


def registration_name(policy_name: str) -> str:
    return REGISTRATION_PREFIX + policy_name


def policy_name_for(registration: str) -> str:
    """Inverse of ``registration_name``; empty when *registration* is not ours."""
    if not registration.startswith(REGISTRATION_PREFIX):
        return ""
    return registration[len(REGISTRATION_PREFIX) :]


def namespace_selector(policy: RecyclePolicy) -> dict[str, Any]:
    """``Exists`` for all namespaces, ``In`` with the sorted distinct set otherwise."""
    if policy.target.all_namespaces:
        requirement: dict[str, Any] = {"key": NAMESPACE_NAME_LABEL, "operator": "Exists"}
    else:
        requirement = {
            "key": NAMESPACE_NAME_LABEL,
            "operator": "In",
            "values": sorted(set(policy.target.namespaces)),
        }
    return {"matchExpressions": [requirement]}


def compile_registration(policy: RecyclePolicy, ca_bundle: bytes, service: WebhookConfig) -> dict[str, Any]:
    """Build the registration body that intercepts deletions covered by *policy*."""
    webhook = {
        "name": service.dns_name,
        "admissionReviewVersions": ["v1"],
        "clientConfig": {
            "caBundle": base64.b64encode(ca_bundle).decode("ascii"),
            "service": {
                "name": service.service_name,
                "namespace": service.namespace,
                "path": service.path,
            },
        },
        "rules": [
            {
                "operations": ["DELETE"],
                "apiGroups": [policy.target.group],
                "apiVersions": ["*"],
                "resources": [policy.target.resource],
            }
        ],
        "namespaceSelector": namespace_selector(policy),
        "failurePolicy": "Fail",
        "matchPolicy": "Exact",
        "sideEffects": "None",
        "timeoutSeconds": service.timeout_seconds,
    }
    return {
        "apiVersion": "admissionregistration.k8s.io/v1",
        "kind": "ValidatingWebhookConfiguration",
        "metadata": {
            "name": registration_name(policy.name),
            "labels": {LABEL_RECYCLE_POLICY: sanitize_label_value(policy.name)},
        },
        "webhooks": [webhook],
    }
