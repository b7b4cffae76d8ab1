"""
Shared test fixtures for the wfe-bootstrap test suite.

Certificates are generated on the fly with cryptography so the suite needs
no checked-in key material. Chain files are written to pytest's tmp_path.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


@dataclass(frozen=True)
class TestCertificate:
    """A generated certificate, its PEM encoding and its private key."""

    __test__ = False

    certificate: x509.Certificate
    pem: bytes = field(repr=False)
    key: ec.EllipticCurvePrivateKey = field(repr=False)

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )


def generate_certificate(common_name: str, san: str | None = None) -> TestCertificate:
    """Create a self-signed EC P-256 certificate valid for 30 days."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    if san is not None:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(san)]), critical=False
        )
    certificate = builder.sign(key, hashes.SHA256())
    return TestCertificate(
        certificate=certificate,
        pem=certificate.public_bytes(serialization.Encoding.PEM),
        key=key,
    )


@pytest.fixture(scope="session")
def intermediate_r3() -> TestCertificate:
    return generate_certificate("Test Intermediate R3")


@pytest.fixture(scope="session")
def intermediate_e1() -> TestCertificate:
    return generate_certificate("Test Intermediate E1")


@pytest.fixture(scope="session")
def root_x1() -> TestCertificate:
    return generate_certificate("Test Root X1")


@pytest.fixture(scope="session")
def cross_signed_root() -> TestCertificate:
    return generate_certificate("Test Cross-Signed Root")


@pytest.fixture()
def write_chain_file(tmp_path: Path) -> Callable[[str, bytes], str]:
    """Return a function that writes bytes to tmp_path/<name> and returns the path."""

    def _write(name: str, contents: bytes) -> str:
        path = tmp_path / name
        path.write_bytes(contents)
        return str(path)

    return _write
