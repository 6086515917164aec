"""TLS material for the webhook server.

The platform accepts webhooks signed by a self-signed certificate as long as
the public key is uploaded with ``setWebhook``.  :func:`generate_self_signed_certificate`
produces such a pair for a hostname (or IP address) using :mod:`cryptography`.
"""

from __future__ import annotations

import ipaddress
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from core.logger import TelewireLogger

logger = TelewireLogger.get_logger()

_KEY_SIZE = 2048
_VALIDITY_DAYS = 365


@dataclass(frozen=True)
class CertificatePair:
    """Paths to a PEM certificate and its PEM private key."""

    cert_path: str
    key_path: str

    def __post_init__(self) -> None:
        for path in (self.cert_path, self.key_path):
            if not os.path.isfile(path):
                raise FileNotFoundError(f"TLS file not found: {path}")


def _subject_alt_name(hostname: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(hostname))
    except ValueError:
        return x509.DNSName(hostname)


def generate_self_signed_certificate(hostname: str, directory: Optional[str] = None) -> CertificatePair:
    """Generate an RSA key and a self-signed certificate for *hostname*.

    Files are written as ``webhook_cert.pem`` / ``webhook_key.pem`` into
    *directory*, or into a fresh temporary directory when omitted.
    """
    if not hostname:
        raise ValueError("hostname is required to generate a certificate.")

    directory = directory or tempfile.mkdtemp(prefix="telewire-tls-")
    os.makedirs(directory, exist_ok=True)

    key = rsa.generate_private_key(public_exponent=65537, key_size=_KEY_SIZE)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, hostname)])
    now = datetime.now(timezone.utc)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=_VALIDITY_DAYS))
        .add_extension(x509.SubjectAlternativeName([_subject_alt_name(hostname)]), critical=False)
        .sign(key, hashes.SHA256())
    )

    cert_path = os.path.join(directory, "webhook_cert.pem")
    key_path = os.path.join(directory, "webhook_key.pem")

    with open(cert_path, "wb") as fh:
        fh.write(certificate.public_bytes(serialization.Encoding.PEM))

    # Private key is readable by the owner only.
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(
            key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )

    logger.info("Generated self-signed certificate", extra={"hostname": hostname, "cert_path": cert_path})
    return CertificatePair(cert_path, key_path)
