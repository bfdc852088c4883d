"""Prometheus metrics for kube-recycle-bin.

All collectors live on the default registry and are exposed by the webhook
server at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

admission_requests_total = Counter(
    "krb_admission_requests_total",
    "Admission review requests received, by HTTP status code.",
    ["code"],
)

recycle_total = Counter(
    "krb_recycle_total",
    "Recycle attempts for intercepted deletions, by outcome.",
    ["outcome"],
)

recycle_duration_seconds = Histogram(
    "krb_recycle_duration_seconds",
    "Time spent capturing and storing a deleted object.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

reconcile_total = Counter(
    "krb_reconcile_total",
    "RecyclePolicy reconciliations, by action and result.",
    ["action", "result"],
)

restore_total = Counter(
    "krb_restore_total",
    "Restore attempts of RecycleItems, by result.",
    ["result"],
)
