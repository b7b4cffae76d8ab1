"""
PEM chain-file reader adapter — strict single-certificate validation.

Adapter layer — implements the CertificateFileReader port using:
  - asn1crypto: PEM armor decoding (block type, headers, base64 body)
  - cryptography (PyCA): X.509 parsing of the DER payload

Each rule is its own function returning Result, chained in this order:

  read file
    → reject CRLF line endings
      → locate and decode exactly one PEM block
        → block type must be CERTIFICATE
          → DER payload must parse as X.509
            → nothing may follow the block
              → guarantee a trailing newline

A file that fails any rule is rejected outright.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from asn1crypto import pem as asn1_pem
from cryptography import x509
from railway import ErrorCode
from railway.result import Result

from wfe_bootstrap.domain.models import IssuerIdentity, LoadedCertificate

log = structlog.get_logger()

CERTIFICATE_BLOCK_TYPE = "CERTIFICATE"

# A BEGIN line at the start of a line, the body, then the END line for the same
# type. One line ending after END belongs to the block; anything beyond is rest.
# Text before BEGIN is skipped.
_PEM_BLOCK = re.compile(
    rb"^-----BEGIN (?P<type>[^\n-][^\n]*?)-----[ \t]*\n"
    rb"(?P<body>.*?)"
    rb"^-----END (?P=type)-----[ \t]*(?:\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


@dataclass(frozen=True, slots=True)
class PemBlock:
    """A decoded PEM block plus whatever followed it in the file."""

    block_type: str
    der: bytes = field(repr=False)
    rest: bytes = field(repr=False)


def _describe(issuer: IssuerIdentity, path: str) -> str:
    return (
        f"CertificateChain entry for AIA issuer url {issuer!r} has an "
        f"invalid chain file: {path!r}"
    )


# ─────────────────────── Validation Rules ───────────────────────


def read_file(path: str, context: str) -> Result[bytes]:
    """Read the raw file contents. Missing or unreadable → FILE_ERROR."""
    return Result.from_computation(
        lambda: Path(path).read_bytes(),
        ErrorCode.FILE_ERROR,
        f"{context} - error reading contents",
    )


def reject_crlf(contents: bytes, context: str) -> Result[bytes]:
    """Only LF line endings are accepted."""
    if b"\r\n" in contents:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            f"{context} - contents had CRLF line endings",
        )
    return Result.success(contents)


def decode_pem_block(contents: bytes, context: str) -> Result[PemBlock]:
    """Locate the first PEM block and decode its armor."""
    match = _PEM_BLOCK.search(contents)
    if match is None:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            f"{context} - contents did not decode as PEM",
        )
    try:
        block_type, _headers, der = asn1_pem.unarmor(match.group(0))
    except ValueError as e:
        return Result.failure(
            ErrorCode.ENCODING_ERROR,
            f"{context} - contents did not decode as PEM",
            e,
        )
    return Result.success(PemBlock(block_type=block_type, der=der, rest=contents[match.end():]))


def require_certificate_type(block: PemBlock, context: str) -> Result[PemBlock]:
    if block.block_type != CERTIFICATE_BLOCK_TYPE:
        return Result.failure(
            ErrorCode.TYPE_MISMATCH_ERROR,
            f"{context} - PEM block type incorrect, found {block.block_type!r}, "
            f"expected {CERTIFICATE_BLOCK_TYPE!r}",
        )
    return Result.success(block)


def parse_certificate(block: PemBlock, context: str) -> Result[x509.Certificate]:
    return Result.from_computation(
        lambda: x509.load_der_x509_certificate(block.der),
        ErrorCode.CERTIFICATE_PARSE_ERROR,
        f"{context} - certificate bytes failed to parse",
    )


def reject_trailing_bytes(block: PemBlock, context: str) -> Result[PemBlock]:
    """Nothing may follow the certificate block."""
    if block.rest:
        return Result.failure(
            ErrorCode.TRAILING_DATA_ERROR,
            f"{context} - PEM contents had unused remainder input ({len(block.rest)} bytes)",
        )
    return Result.success(block)


def ensure_trailing_newline(contents: bytes) -> bytes:
    if contents.endswith(b"\n"):
        return contents
    return contents + b"\n"


# ─────────────────────── Public Reader Class ───────────────────────


class PemCertificateFileReader:
    """
    Read one chain file and validate it as exactly one PEM X.509 certificate.

    Implements the CertificateFileReader port. No exception escapes: every
    problem comes back as a Result.failure whose message names the issuer,
    the file and the rule that was violated.
    """

    def read(self, issuer: IssuerIdentity, path: str) -> Result[LoadedCertificate]:
        context = _describe(issuer, path)
        return (
            read_file(path, context)
            .flat_map(lambda raw: self._validate(raw, context))
            .peek(lambda loaded: log.debug(
                "pem_reader.loaded",
                issuer=issuer,
                path=path,
                subject=loaded.certificate.subject.rfc4514_string(),
            ))
        )

    @staticmethod
    def _validate(raw: bytes, context: str) -> Result[LoadedCertificate]:
        block = (
            reject_crlf(raw, context)
            .flat_map(lambda contents: decode_pem_block(contents, context))
            .flat_map(lambda decoded: require_certificate_type(decoded, context))
        )
        return block.flat_map(
            lambda decoded: parse_certificate(decoded, context).flat_map(
                lambda certificate: reject_trailing_bytes(decoded, context).map(
                    lambda _: LoadedCertificate(
                        pem=ensure_trailing_newline(raw),
                        certificate=certificate,
                    )
                )
            )
        )
