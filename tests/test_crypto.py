"""Tests for the mock entity's signing credential."""

import base64
from datetime import timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization

from webssotest.core.crypto import CertificateLoadError, SigningCredential


@pytest.fixture(scope="module")
def credential() -> SigningCredential:
    return SigningCredential.self_signed("localhost")


class TestSelfSigned:
    """Tests for minted credentials."""

    def test_summary(self, credential):
        summary = credential.summary()
        assert summary.self_signed
        assert "CN=localhost" in summary.subject
        assert "O=WebSSOTest" in summary.subject
        assert not summary.expired
        assert len(summary.fingerprint_sha256.split(":")) == 32

    def test_validity_period(self):
        credential = SigningCredential.self_signed("sp.example.test", days_valid=10)
        cert = credential.certificate
        assert cert.not_valid_after_utc - cert.not_valid_before_utc == timedelta(days=10)

    def test_keeps_key(self, credential):
        assert credential.private_key is not None
        assert credential.private_key.public_key().public_numbers() == credential.certificate.public_key().public_numbers()

    def test_signing_only(self, credential):
        usage = credential.certificate.extensions.get_extension_for_class(x509.KeyUsage).value
        assert usage.digital_signature
        assert not usage.key_encipherment

    def test_base64_der(self, credential):
        """The encoded form is what ds:X509Certificate carries."""
        der = base64.b64decode(credential.certificate_b64)
        assert x509.load_der_x509_certificate(der) == credential.certificate


class TestFromPem:
    """Tests for SigningCredential.from_pem()."""

    def test_pem(self, tmp_path: Path, credential):
        path = tmp_path / "signing.pem"
        path.write_bytes(credential.certificate.public_bytes(serialization.Encoding.PEM))
        loaded = SigningCredential.from_pem(path)
        assert loaded.certificate == credential.certificate
        assert loaded.private_key is None

    def test_missing(self, tmp_path: Path):
        with pytest.raises(CertificateLoadError, match="not found"):
            SigningCredential.from_pem(tmp_path / "absent.pem")

    def test_not_a_certificate(self, tmp_path: Path):
        path = tmp_path / "junk.pem"
        path.write_text("hello")
        with pytest.raises(CertificateLoadError, match="does not contain a PEM certificate"):
            SigningCredential.from_pem(path)
