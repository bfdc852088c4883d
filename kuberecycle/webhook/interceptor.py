"""Admission interceptor: turns a DELETE notification into a RecycleItem.

The interceptor observes deletions, it never gates them. Handling is split
in two phases:

1. ``attempt_recycle`` -- best effort. Builds the snapshot, enforces the size
   limit and creates the RecycleItem with bounded retries. Every error is
   caught, logged and reported as a RecycleOutcome.
2. ``review_response`` -- always answers ``allowed: true``.
"""

from __future__ import annotations

import json
import time
from enum import StrEnum
from typing import Any

import structlog

from kuberecycle.errors import ResolutionError, SizeLimitExceeded
from kuberecycle.models.recycle import RecycledObject, RecycleItem
from kuberecycle.models.types import GroupVersionResource
from kuberecycle.observability.metrics import recycle_duration_seconds, recycle_total
from kuberecycle.retry import DEFAULT_RETRY, Backoff, is_create_retriable, retry_on_error
from kuberecycle.webhook.schemas import AdmissionRequest, AdmissionReview

_log = structlog.get_logger(component="webhook.interceptor")

DEFAULT_MAX_OBJECT_BYTES = 5 * 1024 * 1024


class RecycleOutcome(StrEnum):
    """Result of the best-effort recycling phase."""

    RECYCLED = "recycled"
    SKIPPED_OPERATION = "skipped_operation"
    SKIPPED_DRY_RUN = "skipped_dry_run"
    SKIPPED_NO_OBJECT = "skipped_no_object"
    SKIPPED_UNRESOLVED = "skipped_unresolved"
    SKIPPED_OVERSIZE = "skipped_oversize"
    FAILED = "failed"


def review_response(review: AdmissionReview) -> dict[str, Any]:
    """Build the AdmissionReview reply; the decision is always ``allowed``."""
    return {
        "apiVersion": review.api_version,
        "kind": review.kind,
        "response": {
            "uid": review.request.uid,
            "allowed": True,
        },
    }


class AdmissionInterceptor:
    """Captures deleted objects as RecycleItems.

    Args:
        store:            RecycleItemStore.
        resolver:         DiscoveryResolver, used to tell namespaced types apart.
        max_object_bytes: Objects whose serialized form is larger are not recycled.
        backoff:          Retry schedule for record creation.
    """

    def __init__(
        self,
        store: Any,
        resolver: Any,
        max_object_bytes: int = DEFAULT_MAX_OBJECT_BYTES,
        backoff: Backoff = DEFAULT_RETRY,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._max_object_bytes = max_object_bytes
        self._backoff = backoff

    async def build_recycled_object(self, request: AdmissionRequest) -> RecycledObject:
        """Snapshot the pre-deletion object carried by *request*.

        Raises:
            ResolutionError:   namespaced-ness of the type could not be determined.
            SizeLimitExceeded: the serialized object is over the size limit.
        """
        gvr = GroupVersionResource(
            group=request.resource.group,
            version=request.resource.version,
            resource=request.resource.resource,
        )
        # Namespace objects carry their own name as request namespace, so a
        # non-empty namespace alone does not prove the type is namespaced.
        namespace = ""
        if request.namespace and await self._resolver.is_namespaced(gvr):
            namespace = request.namespace

        raw = json.dumps(request.old_object, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        if len(raw) > self._max_object_bytes:
            raise SizeLimitExceeded(len(raw), self._max_object_bytes)

        return RecycledObject(
            group=gvr.group,
            version=gvr.version,
            kind=request.kind.kind,
            resource=gvr.resource,
            namespace=namespace,
            name=request.name,
            raw=raw,
        )

    async def _create_item(self, obj: RecycledObject) -> RecycleItem:
        # each attempt draws a fresh name suffix
        return await self._store.create(RecycleItem.new(obj))

    async def attempt_recycle(self, request: AdmissionRequest) -> RecycleOutcome:
        """Best-effort capture of the object deleted by *request*. Never raises."""
        t_start = time.monotonic()
        outcome = await self._attempt(request)
        recycle_total.labels(outcome=outcome.value).inc()
        if outcome is RecycleOutcome.RECYCLED:
            recycle_duration_seconds.observe(time.monotonic() - t_start)
        return outcome

    async def _attempt(self, request: AdmissionRequest) -> RecycleOutcome:
        target = f"{request.resource.resource}.{request.resource.group}".rstrip(".")
        log = _log.bind(uid=request.uid, resource=target, namespace=request.namespace, name=request.name)

        if request.operation and request.operation != "DELETE":
            log.debug("recycle_skipped", reason="operation", operation=request.operation)
            return RecycleOutcome.SKIPPED_OPERATION
        if request.dry_run:
            log.debug("recycle_skipped", reason="dry_run")
            return RecycleOutcome.SKIPPED_DRY_RUN
        if request.old_object is None:
            log.warning("recycle_skipped", reason="no old object in request")
            return RecycleOutcome.SKIPPED_NO_OBJECT

        try:
            obj = await self.build_recycled_object(request)
        except ResolutionError as exc:
            log.error("recycle_skipped", reason="namespaced check failed", error=str(exc))
            return RecycleOutcome.SKIPPED_UNRESOLVED
        except SizeLimitExceeded as exc:
            log.error("recycle_skipped", reason="object exceeds size limit", size=exc.size, limit=exc.limit)
            return RecycleOutcome.SKIPPED_OVERSIZE

        log.info("recycling_deleted_object", key=obj.key, size=len(obj.raw))
        try:
            item = await retry_on_error(self._backoff, is_create_retriable, lambda: self._create_item(obj))
        except Exception as exc:  # noqa: BLE001
            log.error("recycle_failed", key=obj.key, error=str(exc))
            return RecycleOutcome.FAILED

        log.info("recycled_deleted_object", key=obj.key, recycle_item=item.name)
        return RecycleOutcome.RECYCLED

    async def handle(self, review: AdmissionReview) -> dict[str, Any]:
        """Run both phases for *review* and return the reply body."""
        await self.attempt_recycle(review.request)
        return review_response(review)
