"""
Domain models — immutable trust material handed to the request handler.

Everything here is built once during startup and never mutated afterwards,
so it can be shared across concurrent request handling without locks:
  - frozen dataclasses
  - tuples instead of lists
  - MappingProxyType instead of dict
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from cryptography import x509

type IssuerIdentity = str
"""AIA issuer URL. Used purely as a map key, never parsed."""

type ChainBytes = bytes
"""Newline-separated PEM certificates, leaf-adjacent intermediate first."""

type ChainSet = tuple[ChainBytes, ...]
"""Index 0 is the default chain, later indices are alternates."""


@dataclass(frozen=True, slots=True)
class LoadedCertificate:
    """
    One validated chain file.

    `pem` is the file content with a trailing newline guaranteed;
    `certificate` is the parsed X.509 certificate from the same bytes.
    """

    pem: bytes = field(repr=False)
    certificate: x509.Certificate


@dataclass(frozen=True, slots=True)
class AssembledChains:
    """
    Output of one chain-assembly run over a chain configuration.

    `chains` holds the concatenated PEM chain per issuer; issuers with no
    files (when allowed) have no entry. `issuer_certificates` holds the first
    certificate of every chain, in configuration order.
    """

    chains: Mapping[IssuerIdentity, ChainBytes]
    issuer_certificates: tuple[x509.Certificate, ...] = ()


@dataclass(frozen=True, slots=True)
class TrustMaterial:
    """
    The complete, validated trust structure served by the front end.

    Maps to the two inputs of the request-handler constructor:
      - chains: issuer URL → (default chain, *alternate chains)
      - issuer_certificates: direct issuer certificate of each default chain
    """

    chains: Mapping[IssuerIdentity, ChainSet]
    issuer_certificates: tuple[x509.Certificate, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.chains, MappingProxyType):
            frozen = MappingProxyType({k: tuple(v) for k, v in self.chains.items()})
            object.__setattr__(self, "chains", frozen)
        object.__setattr__(self, "issuer_certificates", tuple(self.issuer_certificates))

    @property
    def issuer_urls(self) -> tuple[IssuerIdentity, ...]:
        return tuple(self.chains)

    def default_chain(self, issuer: IssuerIdentity) -> ChainBytes | None:
        chain_set = self.chains.get(issuer)
        return chain_set[0] if chain_set else None

    def alternate_chains(self, issuer: IssuerIdentity) -> ChainSet:
        return self.chains.get(issuer, ())[1:]


@dataclass(frozen=True, slots=True)
class HandlerSettings:
    """
    Operational values passed through to the request handler.

    Defaults match the front end's historical behavior: data older than ten
    minutes is stale, authorizations live 30 days, pending ones 7 days.
    """

    stale_timeout_seconds: float = 600.0
    authorization_lifetime_days: int = 30
    pending_authorization_lifetime_days: int = 7
    subscriber_agreement_url: str = ""
    allow_origins: tuple[str, ...] = ()
    directory_caa_identity: str = ""
    directory_website: str = ""
    legacy_key_id_prefix: str = ""
