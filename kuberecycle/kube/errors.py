"""Translation of kubernetes-asyncio ApiException and transport errors into StoreErrors."""

from __future__ import annotations

import json

import aiohttp
from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

from kuberecycle.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreError,
    TransientStoreError,
)

_TRANSIENT_STATUSES = frozenset({429, 503})

# Failures below the HTTP layer: the request may never have reached the server.
TRANSPORT_ERRORS = (aiohttp.ClientError, TimeoutError)
API_ERRORS = (ApiException, *TRANSPORT_ERRORS)


def status_reason(exc: ApiException) -> str:
    """Return the ``reason`` field of the Status body carried by *exc*, if any."""
    body = exc.body
    if not body:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        status = json.loads(body)
    except (TypeError, ValueError):
        return ""
    if not isinstance(status, dict):
        return ""
    return str(status.get("reason") or "")


def translate_api_exception(exc: ApiException, subject: str) -> StoreError:
    """Map *exc* to the matching StoreError subclass.

    A 409 is AlreadyExists when the Status reason says so (create) and a
    Conflict otherwise (update with a stale resourceVersion).
    """
    status = int(exc.status or 0)
    reason = status_reason(exc) or str(exc.reason or "")
    message = f"{subject}: {status} {reason}".rstrip()

    if status == 404:
        return NotFoundError(message, status=status, reason=reason)
    if status == 409:
        if reason == "AlreadyExists":
            return AlreadyExistsError(message, status=status, reason=reason)
        return ConflictError(message, status=status, reason=reason)
    if status in _TRANSIENT_STATUSES:
        return TransientStoreError(message, status=status, reason=reason)
    return StoreError(message, status=status, reason=reason)


def translate_error(exc: Exception, subject: str) -> StoreError:
    """Map an ApiException or a transport failure to a StoreError subclass.

    Transport failures carry no status and are reported as transient.
    """
    if isinstance(exc, ApiException):
        return translate_api_exception(exc, subject)
    detail = str(exc) or type(exc).__name__
    return TransientStoreError(f"{subject}: {detail}")
