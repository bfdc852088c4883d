"""RecyclePolicy to webhook registration reconciliation.

Submodules:
    compiler      -- pure policy -> ValidatingWebhookConfiguration compilation
    registrations -- AdmissionregistrationV1Api adapter
    reconciler    -- per-name create/replace/delete with conflict retry
    queue         -- keyed work queue with per-key serialization
    controller    -- watch + resync loop feeding the queue
"""

from kuberecycle.controller.compiler import compile_registration, registration_name
from kuberecycle.controller.controller import PolicyController
from kuberecycle.controller.reconciler import PolicyReconciler, ReconcileResult
from kuberecycle.controller.registrations import RegistrationClient, RegistrationRef

__all__ = [
    "PolicyController",
    "PolicyReconciler",
    "ReconcileResult",
    "RegistrationClient",
    "RegistrationRef",
    "compile_registration",
    "registration_name",
]
