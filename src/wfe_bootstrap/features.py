"""
Feature flags — named booleans toggled from configuration.

The flag set is resolved once at startup into an immutable FeatureSet that is
passed to whoever needs it; there is no process-wide mutable flag table.

Unknown flag names are a configuration error, unless the configuration
itself enables AllowUnrecognizedFeatures (useful while rolling a config that
names a flag only newer builds know about).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, unique

import structlog
from railway import ErrorCode
from railway.result import Result

log = structlog.get_logger()


@unique
class FeatureFlag(Enum):
    StoreRevokerInfo = "StoreRevokerInfo"
    ROCSPStage6 = "ROCSPStage6"
    ROCSPStage7 = "ROCSPStage7"
    CAAValidationMethods = "CAAValidationMethods"
    CAAAccountURI = "CAAAccountURI"
    EnforceMultiVA = "EnforceMultiVA"
    MultiVAFullResults = "MultiVAFullResults"
    ECDSAForAll = "ECDSAForAll"
    ServeRenewalInfo = "ServeRenewalInfo"
    AllowUnrecognizedFeatures = "AllowUnrecognizedFeatures"
    ExpirationMailerUsesJoin = "ExpirationMailerUsesJoin"
    CertCheckerChecksValidations = "CertCheckerChecksValidations"
    CertCheckerRequiresValidations = "CertCheckerRequiresValidations"
    AsyncFinalize = "AsyncFinalize"
    RequireCommonName = "RequireCommonName"
    StoreLintingCertificateInsteadOfPrecertificate = "StoreLintingCertificateInsteadOfPrecertificate"


_DEFAULTS: Mapping[FeatureFlag, bool] = {flag: False for flag in FeatureFlag} | {
    FeatureFlag.RequireCommonName: True,
}


@dataclass(frozen=True, slots=True)
class FeatureSet:
    """Resolved flag values. Flags not named in configuration keep their default."""

    enabled: frozenset[FeatureFlag] = field(
        default_factory=lambda: frozenset(f for f, on in _DEFAULTS.items() if on)
    )

    def is_enabled(self, flag: FeatureFlag) -> bool:
        return flag in self.enabled

    def names(self) -> list[str]:
        return sorted(f.value for f in self.enabled)


def set_features(configured: Mapping[str, bool]) -> Result[FeatureSet]:
    """
    Resolve configured flag names into a FeatureSet.

    Returns Result.failure(CONFIGURATION_ERROR, ...) naming the first unknown
    flag, unless AllowUnrecognizedFeatures is switched on in `configured`.
    """
    allow_unrecognized = bool(configured.get(FeatureFlag.AllowUnrecognizedFeatures.value, False))
    values = dict(_DEFAULTS)

    for name, value in configured.items():
        try:
            flag = FeatureFlag(name)
        except ValueError:
            if allow_unrecognized:
                log.warning("features.unrecognized", feature=name)
                continue
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                f"feature {name!r} doesn't exist",
            )
        values[flag] = bool(value)

    return Result.success(FeatureSet(enabled=frozenset(f for f, on in values.items() if on)))
