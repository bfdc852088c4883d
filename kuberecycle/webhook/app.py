"""FastAPI application factory for the admission webhook.

Usage::

    from kuberecycle.webhook.app import create_app

    app = create_app(interceptor=interceptor, config=config.webhook)

Serves the AdmissionReview endpoint on ``config.path``, ``/healthz`` and the
Prometheus ``/metrics`` endpoint.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError

from kuberecycle.models.config import WebhookConfig
from kuberecycle.observability.metrics import admission_requests_total
from kuberecycle.webhook.schemas import AdmissionReview, ErrorResponse

_log = structlog.get_logger(component="webhook.app")


class _PayloadTooLarge(Exception):
    def __init__(self, limit: int) -> None:
        super().__init__(f"request body exceeds {limit} bytes")
        self.limit = limit


async def _read_body(request: Request, limit: int) -> bytes:
    """Read the request body, giving up as soon as it grows past *limit*."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise _PayloadTooLarge(limit)

    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise _PayloadTooLarge(limit)
        chunks.append(chunk)
    return b"".join(chunks)


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    admission_requests_total.labels(code=str(status_code)).inc()
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(interceptor: Any, config: WebhookConfig | None = None) -> FastAPI:
    """Create the webhook FastAPI application.

    Args:
        interceptor: AdmissionInterceptor handling decoded reviews.
        config:      WebhookConfig; supplies the review path and body limit.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from kuberecycle import __version__

    config = config or WebhookConfig()

    app = FastAPI(
        title="kube-recycle-bin webhook",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.interceptor = interceptor
    app.state.config = config

    @app.post(config.path)
    async def admission_review(request: Request) -> JSONResponse:
        try:
            body = await _read_body(request, config.max_request_bytes)
        except _PayloadTooLarge as exc:
            _log.warning("admission_request_rejected", reason="body too large", limit=exc.limit)
            return _error(413, "REQUEST_TOO_LARGE", str(exc))

        try:
            review = AdmissionReview.model_validate_json(body)
        except ValidationError as exc:
            errors = exc.errors()
            detail = str(errors[0].get("msg", "")) if errors else "invalid AdmissionReview"
            _log.warning("admission_request_rejected", reason="malformed review", error=detail)
            return _error(400, "INVALID_ADMISSION_REVIEW", detail)

        response = await request.app.state.interceptor.handle(review)
        admission_requests_total.labels(code="200").inc()
        return JSONResponse(status_code=200, content=response)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="INTERNAL_ERROR", detail="An unexpected error occurred.").model_dump(),
        )

    return app
