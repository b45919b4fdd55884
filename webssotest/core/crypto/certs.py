"""Signing material published in the mock entity's metadata.

The harness never signs anything itself; the certificate only has to be
present so that targets which insist on a KeyDescriptor accept the mock
entity's metadata. Either a PEM file supplied by the operator is used, or a
throwaway self-signed certificate is minted for the run.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

ISSUER_ORGANIZATION = "WebSSOTest"


class CertificateError(Exception):
    """Base exception for certificate-related errors."""


class CertificateLoadError(CertificateError):
    """The certificate file is missing or does not hold a PEM certificate."""


@dataclass(frozen=True)
class CertificateSummary:
    """What an operator needs to know about a metadata certificate."""

    subject: str
    not_after: datetime
    fingerprint_sha256: str
    self_signed: bool

    @property
    def expired(self) -> bool:
        return self.not_after <= datetime.now(UTC)


@dataclass(frozen=True)
class SigningCredential:
    """A certificate, plus its key when the harness minted it."""

    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey | None = None

    @classmethod
    def self_signed(cls, host: str, days_valid: int = 365, key_size: int = 2048) -> SigningCredential:
        """Mint a signing-only certificate named after the mock entity's host."""
        key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        name = x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, ISSUER_ORGANIZATION),
            x509.NameAttribute(NameOID.COMMON_NAME, host),
        ])
        issued = datetime.now(UTC)
        certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(issued)
            .not_valid_after(issued + timedelta(days=days_valid))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .sign(key, hashes.SHA256())
        )
        return cls(certificate=certificate, private_key=key)

    @classmethod
    def from_pem(cls, path: Path) -> SigningCredential:
        """Use an existing certificate; its key stays with the operator.

        Raises:
            CertificateLoadError: If the file is missing or malformed.
        """
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise CertificateLoadError(f"Certificate file not found: {path}") from None
        except OSError as e:
            raise CertificateLoadError(f"Cannot read certificate {path}: {e}") from e
        try:
            return cls(certificate=x509.load_pem_x509_certificate(data))
        except ValueError as e:
            raise CertificateLoadError(f"{path} does not contain a PEM certificate: {e}") from e

    @property
    def certificate_b64(self) -> str:
        """DER, base64-encoded, as ds:X509Certificate carries it."""
        der = self.certificate.public_bytes(serialization.Encoding.DER)
        return base64.b64encode(der).decode("ascii")

    def summary(self) -> CertificateSummary:
        cert = self.certificate
        return CertificateSummary(
            subject=cert.subject.rfc4514_string(),
            not_after=cert.not_valid_after_utc,
            fingerprint_sha256=cert.fingerprint(hashes.SHA256()).hex(":"),
            self_signed=cert.subject == cert.issuer,
        )
