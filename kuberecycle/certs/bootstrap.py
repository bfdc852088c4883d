"""Self-signed TLS key pair for the admission webhook.

The pair is stored in a ``kubernetes.io/tls`` Secret so that every replica
and every restart serves the same certificate, and the same certificate is
embedded as ``caBundle`` in the compiled webhook registrations.

Resolution happens once per process and is cached; the certificate is never
rotated while the process runs.
"""

from __future__ import annotations

import asyncio
import base64
import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from kuberecycle.errors import AlreadyExistsError, NotFoundError, TrustMaterialError
from kuberecycle.kube.errors import API_ERRORS, translate_error

_log = structlog.get_logger(component="certs.bootstrap")

TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"
SECRET_TYPE_TLS = "kubernetes.io/tls"

_KEY_SIZE = 2048
_VALIDITY = timedelta(days=365)


@dataclass(frozen=True)
class TrustMaterial:
    """PEM-encoded certificate and private key."""

    cert_pem: bytes
    key_pem: bytes

    def __repr__(self) -> str:
        return f"TrustMaterial(cert_pem=<{len(self.cert_pem)} bytes>, key_pem=<redacted>)"


def generate_self_signed(host: str, alternate_dns: list[str] | tuple[str, ...] = ()) -> TrustMaterial:
    """Generate an RSA key and a self-signed certificate for *host*.

    The certificate is its own CA so it can be handed to the API server as
    the webhook ``caBundle``. CPU bound; call it from a worker thread.
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=_KEY_SIZE)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, host)])
    dns_names = [host, *(name for name in alternate_dns if name != host)]
    now = datetime.now(tz=UTC)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(hours=1))
        .not_valid_after(now + _VALIDITY)
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(n) for n in dns_names]), critical=False)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .sign(key, hashes.SHA256())
    )

    return TrustMaterial(
        cert_pem=cert.public_bytes(serialization.Encoding.PEM),
        key_pem=key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ),
    )


def write_tls_files(material: TrustMaterial, cert_file: str, key_file: str) -> None:
    """Write the PEMs for the TLS listener; the key file is readable by the owner only."""
    cert_path = Path(cert_file)
    key_path = Path(key_file)
    cert_path.parent.mkdir(parents=True, exist_ok=True)
    key_path.parent.mkdir(parents=True, exist_ok=True)

    cert_path.write_bytes(material.cert_pem)
    cert_path.chmod(0o644)

    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(material.key_pem)
    key_path.chmod(0o600)


class TrustMaterialProvider:
    """Fetch the webhook key pair from its Secret, creating it on first use.

    Args:
        core_v1:       kubernetes-asyncio ``CoreV1Api``.
        namespace:     Namespace of the webhook Secret.
        secret_name:   Name of the ``kubernetes.io/tls`` Secret.
        host:          DNS name the certificate is issued for.
        alternate_dns: Additional DNS SANs.
    """

    def __init__(
        self,
        core_v1: Any,
        namespace: str,
        secret_name: str,
        host: str,
        alternate_dns: list[str] | tuple[str, ...] = (),
    ) -> None:
        self._core_v1 = core_v1
        self._namespace = namespace
        self._secret_name = secret_name
        self._host = host
        self._alternate_dns = tuple(alternate_dns)
        self._material: TrustMaterial | None = None
        self._lock = asyncio.Lock()

    @property
    def cached(self) -> TrustMaterial | None:
        return self._material

    async def fetch_or_create(self) -> TrustMaterial:
        """Return the key pair, resolving it at most once per provider.

        Raises:
            TrustMaterialError: the Secret could not be read or written, or
                key generation failed.
        """
        if self._material is not None:
            return self._material
        async with self._lock:
            if self._material is None:
                self._material = await self._resolve()
        return self._material

    async def ca_bundle(self) -> bytes:
        """PEM certificate to embed as the webhook ``caBundle``."""
        return (await self.fetch_or_create()).cert_pem

    async def _resolve(self) -> TrustMaterial:
        try:
            return await self._read_secret()
        except NotFoundError:
            pass

        try:
            material = await asyncio.to_thread(generate_self_signed, self._host, self._alternate_dns)
        except Exception as exc:
            raise TrustMaterialError(f"failed to generate self-signed cert and key: {exc}") from exc

        try:
            await self._create_secret(material)
            _log.info("cert_secret_created", secret=self._secret_name, namespace=self._namespace)
        except AlreadyExistsError:
            # another replica won the race; our pair stays valid for this process
            _log.info("cert_secret_created_concurrently", secret=self._secret_name, namespace=self._namespace)
        return material

    async def _read_secret(self) -> TrustMaterial:
        try:
            secret = await self._core_v1.read_namespaced_secret(self._secret_name, self._namespace)
        except API_ERRORS as exc:
            err = translate_error(exc, f"get secret [{self._secret_name}]")
            if isinstance(err, NotFoundError):
                raise err from exc
            raise TrustMaterialError(str(err)) from exc

        data = secret.data or {}
        if TLS_CERT_KEY not in data or TLS_PRIVATE_KEY_KEY not in data:
            raise TrustMaterialError(f"secret [{self._secret_name}] does not hold a TLS key pair")
        _log.info("cert_secret_found", secret=self._secret_name, namespace=self._namespace)
        return TrustMaterial(
            cert_pem=base64.b64decode(data[TLS_CERT_KEY]),
            key_pem=base64.b64decode(data[TLS_PRIVATE_KEY_KEY]),
        )

    async def _create_secret(self, material: TrustMaterial) -> None:
        body = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": self._secret_name, "namespace": self._namespace},
            "type": SECRET_TYPE_TLS,
            "data": {
                TLS_CERT_KEY: base64.b64encode(material.cert_pem).decode("ascii"),
                TLS_PRIVATE_KEY_KEY: base64.b64encode(material.key_pem).decode("ascii"),
            },
        }
        try:
            await self._core_v1.create_namespaced_secret(self._namespace, body)
        except API_ERRORS as exc:
            err = translate_error(exc, f"create secret [{self._secret_name}]")
            if isinstance(err, AlreadyExistsError):
                raise err from exc
            raise TrustMaterialError(str(err)) from exc
