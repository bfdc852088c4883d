"""Pydantic models for the ``admission.k8s.io/v1`` AdmissionReview envelope.

Only the fields the interceptor reads are modelled; everything else in the
request is ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GroupVersionKindRef(_Model):
    group: str = ""
    version: str = ""
    kind: str = ""


class GroupVersionResourceRef(_Model):
    group: str = ""
    version: str = ""
    resource: str = ""


class AdmissionRequest(_Model):
    """The ``request`` stanza of an AdmissionReview."""

    uid: str
    kind: GroupVersionKindRef = Field(default_factory=GroupVersionKindRef)
    resource: GroupVersionResourceRef = Field(default_factory=GroupVersionResourceRef)
    name: str = ""
    namespace: str = ""
    operation: str = ""
    old_object: dict[str, Any] | None = Field(default=None, alias="oldObject")
    dry_run: bool = Field(default=False, alias="dryRun")


class AdmissionReview(_Model):
    api_version: str = Field(default="admission.k8s.io/v1", alias="apiVersion")
    kind: str = "AdmissionReview"
    request: AdmissionRequest


class ErrorResponse(BaseModel):
    """Error envelope for requests that are not valid AdmissionReviews."""

    error: str
    detail: str
