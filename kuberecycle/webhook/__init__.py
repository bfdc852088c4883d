"""Admission webhook that captures deleted objects.

Submodules:
    schemas     -- AdmissionReview request/response models
    interceptor -- two-phase recycle-then-allow handling
    app         -- FastAPI application factory
"""

from kuberecycle.webhook.app import create_app
from kuberecycle.webhook.interceptor import AdmissionInterceptor, RecycleOutcome, review_response

__all__ = ["AdmissionInterceptor", "RecycleOutcome", "create_app", "review_response"]
