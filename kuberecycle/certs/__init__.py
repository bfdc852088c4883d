"""TLS trust bootstrap for the admission webhook."""

from kuberecycle.certs.bootstrap import (
    TrustMaterial,
    TrustMaterialProvider,
    generate_self_signed,
    write_tls_files,
)

__all__ = [
    "TrustMaterial",
    "TrustMaterialProvider",
    "generate_self_signed",
    "write_tls_files",
]
