"""X.509 helpers for the mock entity."""

from webssotest.core.crypto.certs import (
    CertificateError,
    CertificateLoadError,
    CertificateSummary,
    SigningCredential,
)

__all__ = [
    "CertificateError",
    "CertificateLoadError",
    "CertificateSummary",
    "SigningCredential",
]
