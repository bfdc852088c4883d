"""Tests for the admission webhook HTTP surface.

Covers the review endpoint (allowed echo, malformed input, body limits),
/healthz and /metrics, plus a hypothesis fuzz asserting that arbitrary
bodies never produce a 500 and error responses always carry ``error`` and
``detail``.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from hypothesis import given, settings
from hypothesis import strategies as st

from kuberecycle.models.config import WebhookConfig
from kuberecycle.webhook.app import create_app
from kuberecycle.webhook.interceptor import review_response
from kuberecycle.webhook.schemas import AdmissionReview

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _make_interceptor() -> MagicMock:
    interceptor = MagicMock()

    async def _handle(review: AdmissionReview) -> dict[str, Any]:
        return review_response(review)

    interceptor.handle = AsyncMock(side_effect=_handle)
    return interceptor


def _make_app(interceptor: MagicMock | None = None, config: WebhookConfig | None = None) -> TestClient:
    app = create_app(interceptor=interceptor or _make_interceptor(), config=config)
    return TestClient(app, raise_server_exceptions=False)


def _review(uid: str = "705ab4f5-6393-11e8-b7cc-42010a800002") -> dict[str, Any]:
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": uid,
            "kind": {"group": "apps", "version": "v1", "kind": "Deployment"},
            "resource": {"group": "apps", "version": "v1", "resource": "deployments"},
            "name": "nginx",
            "namespace": "dev",
            "operation": "DELETE",
            "oldObject": {
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "metadata": {"name": "nginx", "namespace": "dev", "resourceVersion": "42"},
            },
        },
    }


# ---------------------------------------------------------------------------
# Review endpoint
# ---------------------------------------------------------------------------


class TestAdmissionReviewEndpoint:
    def test_valid_review_is_allowed(self) -> None:
        interceptor = _make_interceptor()
        client = _make_app(interceptor)

        resp = client.post("/webhook-recycle", json=_review("abc-123"))

        assert resp.status_code == 200
        body = resp.json()
        assert body["apiVersion"] == "admission.k8s.io/v1"
        assert body["kind"] == "AdmissionReview"
        assert body["response"] == {"uid": "abc-123", "allowed": True}
        interceptor.handle.assert_awaited_once()
        review = interceptor.handle.await_args.args[0]
        assert review.request.old_object["metadata"]["resourceVersion"] == "42"

    def test_custom_path(self) -> None:
        client = _make_app(config=WebhookConfig(path="/admit"))
        assert client.post("/admit", json=_review()).status_code == 200
        assert client.post("/webhook-recycle", json=_review()).status_code == 404

    def test_malformed_json_is_400(self) -> None:
        interceptor = _make_interceptor()
        client = _make_app(interceptor)

        resp = client.post("/webhook-recycle", content=b"{not json", headers={"content-type": "application/json"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_ADMISSION_REVIEW"
        interceptor.handle.assert_not_awaited()

    def test_empty_body_is_400(self) -> None:
        resp = _make_app().post("/webhook-recycle", content=b"")
        assert resp.status_code == 400

    def test_non_object_body_is_400(self) -> None:
        resp = _make_app().post("/webhook-recycle", json=[1, 2, 3])
        assert resp.status_code == 400
        assert "detail" in resp.json()

    def test_missing_request_is_400(self) -> None:
        resp = _make_app().post("/webhook-recycle", json={"apiVersion": "admission.k8s.io/v1"})
        assert resp.status_code == 400

    def test_oversized_body_is_413(self) -> None:
        interceptor = _make_interceptor()
        client = _make_app(interceptor, WebhookConfig(max_request_bytes=256))

        review = _review()
        review["request"]["oldObject"]["data"] = {"blob": "x" * 1024}
        resp = client.post("/webhook-recycle", json=review)

        assert resp.status_code == 413
        assert resp.json()["error"] == "REQUEST_TOO_LARGE"
        interceptor.handle.assert_not_awaited()

    def test_oversized_streamed_body_is_413(self) -> None:
        client = _make_app(config=WebhookConfig(max_request_bytes=256))

        def _chunks() -> Iterator[bytes]:
            for _ in range(10):
                yield b"x" * 64

        resp = client.post("/webhook-recycle", content=_chunks())
        assert resp.status_code == 413

    def test_interceptor_crash_is_500_without_trace(self) -> None:
        interceptor = MagicMock()
        interceptor.handle = AsyncMock(side_effect=RuntimeError("secret internals"))
        resp = _make_app(interceptor).post("/webhook-recycle", json=_review())

        assert resp.status_code == 500
        assert resp.json()["error"] == "INTERNAL_ERROR"
        assert "secret internals" not in resp.text


# ---------------------------------------------------------------------------
# Auxiliary endpoints
# ---------------------------------------------------------------------------


class TestAuxiliaryEndpoints:
    def test_healthz(self) -> None:
        resp = _make_app().get("/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_metrics_exposes_counters(self) -> None:
        client = _make_app()
        client.post("/webhook-recycle", json=_review())

        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert "krb_admission_requests_total" in resp.text
        assert "krb_recycle_total" in resp.text

    def test_docs_disabled(self) -> None:
        client = _make_app()
        assert client.get("/docs").status_code == 404
        assert client.get("/openapi.json").status_code == 404


# ---------------------------------------------------------------------------
# Fuzz
# ---------------------------------------------------------------------------

_json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=20),
    lambda children: st.lists(children, max_size=4) | st.dictionaries(st.text(max_size=10), children, max_size=4),
    max_leaves=12,
)


class TestAdmissionReviewFuzz:
    @given(body=st.binary(max_size=512))
    @settings(max_examples=100, deadline=None)
    def test_arbitrary_bytes_never_500(self, body: bytes) -> None:
        resp = _make_app().post("/webhook-recycle", content=body)
        assert resp.status_code in (200, 400)
        if resp.status_code == 400:
            payload = resp.json()
            assert "error" in payload
            assert "detail" in payload

    @given(request=_json_values)
    @settings(max_examples=100, deadline=None)
    def test_arbitrary_request_stanza_never_500(self, request: Any) -> None:
        body = {"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview", "request": request}
        resp = _make_app().post("/webhook-recycle", content=json.dumps(body).encode())
        assert resp.status_code in (200, 400)
        assert resp.headers["content-type"] == "application/json"
