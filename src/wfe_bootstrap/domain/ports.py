"""
Ports — Protocol-based interfaces between the assembly logic and the outside.

  Domain ← Ports (protocols) ← Adapters (implementations)

The chain assembler depends on CertificateFileReader only, so tests can feed
it fake readers. The request handler itself lives outside this package: any
callable matching RequestHandlerFactory can be wired in by the composition root.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from railway.result import Result

from wfe_bootstrap.domain.models import (
    HandlerSettings,
    IssuerIdentity,
    LoadedCertificate,
    TrustMaterial,
)
from wfe_bootstrap.features import FeatureSet


@runtime_checkable
class CertificateFileReader(Protocol):
    """
    Port: read and strictly validate a single PEM certificate file.

    `issuer` is only used to give failures enough context for an operator
    to find the offending configuration entry.
    """

    def read(self, issuer: IssuerIdentity, path: str) -> Result[LoadedCertificate]: ...


@runtime_checkable
class RequestHandlerFactory(Protocol):
    """
    Port: build the ASGI request handler from frozen startup state.

    The returned application is shared by both listeners.
    """

    def __call__(
        self,
        trust: TrustMaterial,
        features: FeatureSet,
        settings: HandlerSettings,
    ) -> Any: ...
