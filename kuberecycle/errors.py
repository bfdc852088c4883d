"""Error taxonomy shared by every kube-recycle-bin component.

NotFoundError        -- referenced record, policy or registration is absent.
AlreadyExistsError   -- name collision on create; retried locally.
ConflictError        -- stale resourceVersion on update; retried with re-fetch.
TransientStoreError  -- the API server rejected the call without processing it.
StoreError           -- any other API failure.
ResolutionError      -- a resource reference could not be resolved via discovery.
SizeLimitExceeded    -- captured payload is over the recycling threshold.
TrustMaterialError   -- TLS key pair could not be generated or persisted.
"""

from __future__ import annotations


class RecycleBinError(Exception):
    """Base class for all kube-recycle-bin errors."""


class StoreError(RecycleBinError):
    """An object-store call failed.

    Attributes:
        status: HTTP status returned by the API server, 0 when unknown.
        reason: Machine-readable Status reason (e.g. ``AlreadyExists``).
    """

    def __init__(self, message: str, status: int = 0, reason: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason


class NotFoundError(StoreError):
    """The referenced object does not exist."""


class AlreadyExistsError(StoreError):
    """An object with the same name already exists."""


class ConflictError(StoreError):
    """The object was modified concurrently (resourceVersion mismatch)."""


class TransientStoreError(StoreError):
    """The request was rejected before being processed (throttled or unavailable)."""


class ResolutionError(RecycleBinError):
    """A resource reference could not be resolved against discovery metadata."""


class SizeLimitExceeded(RecycleBinError):
    """A payload is larger than the configured limit."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"payload of {size} bytes exceeds limit of {limit} bytes")
        self.size = size
        self.limit = limit


class TrustMaterialError(RecycleBinError):
    """The webhook TLS key pair could not be obtained."""
