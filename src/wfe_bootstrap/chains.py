"""
Chains — assemble validated certificate chains per AIA issuer URL.

Domain layer — no direct I/O. Files are read through the injected
CertificateFileReader port, and every step returns Result[T] so the first
bad file aborts the whole assembly:

  load_certificate_chains(defaults, require_at_least_one_chain=True)
    → load_certificate_chains(alternates, require_at_least_one_chain=False)
      → build_chain_sets(defaults, alternates)
        → TrustMaterial

No partially validated trust store is ever returned.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import MappingProxyType

from cryptography import x509
from railway import ErrorCode
from railway.result import Result

from wfe_bootstrap.domain.models import (
    AssembledChains,
    ChainBytes,
    ChainSet,
    IssuerIdentity,
    TrustMaterial,
)
from wfe_bootstrap.domain.ports import CertificateFileReader

type ChainConfig = Mapping[IssuerIdentity, Sequence[str]]

_SEPARATOR = b"\n"


def _load_issuer_chain(
    issuer: IssuerIdentity,
    cert_files: Sequence[str],
    require_at_least_one_chain: bool,
    reader: CertificateFileReader,
) -> Result[tuple[ChainBytes, x509.Certificate | None]]:
    """
    Read one issuer's files in configured order and concatenate them.

    Each file is preceded by a newline. Returns the chain bytes together with
    the parsed first certificate (None when no files were configured).
    """
    if require_at_least_one_chain and not cert_files:
        return Result.failure(
            ErrorCode.CONFIGURATION_ERROR,
            f"CertificateChain entry for AIA issuer url {issuer!r} has no chain "
            f"file names configured",
        )

    # Lazy generator: Result.all_of stops reading at the first failing file.
    loaded = Result.all_of(reader.read(issuer, path) for path in cert_files)

    return loaded.map(
        lambda certs: (
            b"".join(_SEPARATOR + cert.pem for cert in certs),
            certs[0].certificate if certs else None,
        )
    )


def load_certificate_chains(
    chain_config: ChainConfig,
    require_at_least_one_chain: bool,
    reader: CertificateFileReader,
) -> Result[AssembledChains]:
    """
    Load, validate and concatenate the chain files of every configured issuer.

    For each AIA issuer URL the files are read in the order given and joined
    as "\\n" + pem(a) + "\\n" + pem(b) ... The first certificate of each chain
    is collected as a direct issuer certificate. Issuers whose file list is
    empty get no entry (only allowed when require_at_least_one_chain is False).

    Returns Result[AssembledChains], or the first failure encountered.
    """
    chains: dict[IssuerIdentity, ChainBytes] = {}
    issuer_certificates: list[x509.Certificate] = []

    for issuer, cert_files in chain_config.items():
        result = _load_issuer_chain(issuer, cert_files, require_at_least_one_chain, reader)
        if result.is_failure():
            return Result.failure_from(result.error())

        chain, direct_issuer = result.value()
        if direct_issuer is not None:
            issuer_certificates.append(direct_issuer)
        if chain:
            chains[issuer] = chain

    return Result.success(
        AssembledChains(
            chains=MappingProxyType(chains),
            issuer_certificates=tuple(issuer_certificates),
        )
    )


def build_chain_sets(
    defaults: Mapping[IssuerIdentity, ChainBytes],
    *alternates: Mapping[IssuerIdentity, ChainBytes],
) -> Result[Mapping[IssuerIdentity, ChainSet]]:
    """
    Merge default chains with zero or more alternate chain maps.

    The default chain of each issuer is always index 0; alternates are
    appended in the order the maps are given. An alternate for an issuer
    that has no default chain fails the whole build.
    """
    chain_sets: dict[IssuerIdentity, list[ChainBytes]] = {
        issuer: [chain] for issuer, chain in defaults.items()
    }

    for alternate_map in alternates:
        for issuer, chain in alternate_map.items():
            if issuer not in chain_sets:
                return Result.failure(
                    ErrorCode.CONFIGURATION_ERROR,
                    f"AIA Issuer URL {issuer!r} appeared in AlternateCertificateChains, "
                    f"but does not exist in CertificateChains",
                )
            chain_sets[issuer].append(chain)

    return Result.success(
        MappingProxyType({issuer: tuple(chains) for issuer, chains in chain_sets.items()})
    )


def assemble_trust_material(
    chain_config: ChainConfig,
    alternate_chain_config: ChainConfig | None,
    reader: CertificateFileReader,
) -> Result[TrustMaterial]:
    """
    Build the complete trust structure from configuration.

    Flow:
      1. Load default chains (every issuer needs at least one file)
      2. Load alternate chains, if configured (empty lists allowed)
      3. Merge into one ChainSet per issuer

    Issuer certificates come from the default chains only.
    """
    defaults = load_certificate_chains(chain_config, True, reader)

    if alternate_chain_config is None:
        alternates: Result[tuple[AssembledChains, ...]] = defaults.map(lambda _: ())
    else:
        alternates = defaults.flat_map(
            lambda _: load_certificate_chains(alternate_chain_config, False, reader)
        ).map(lambda assembled: (assembled,))

    return defaults.flat_map(
        lambda default_chains: alternates.flat_map(
            lambda alternate_chains: build_chain_sets(
                default_chains.chains,
                *(alt.chains for alt in alternate_chains),
            ).map(
                lambda chain_sets: TrustMaterial(
                    chains=chain_sets,
                    issuer_certificates=default_chains.issuer_certificates,
                )
            )
        )
    )
