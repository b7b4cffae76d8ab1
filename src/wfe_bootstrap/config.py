"""
Configuration — typed, validated settings loaded from environment/.env or a JSON file.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Optionally seed values from a JSON config file (WFE_CONFIG_FILE)
  - Validate types and constraints at startup

Only AppSettings is a BaseSettings instance. WfeSettings is a plain BaseModel
populated via env_nested_delimiter="__", so WFE__LISTEN_ADDRESS maps to
wfe.listen_address. Map-valued fields (certificate chains, features) are read
from JSON strings, e.g.

  WFE__CERTIFICATE_CHAINS='{"http://r3.example/": ["/etc/wfe/r3.pem", "/etc/wfe/root.pem"]}'
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wfe_bootstrap.domain.models import HandlerSettings

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

CONFIG_FILE_ENV_VAR = "WFE_CONFIG_FILE"


def _validate_host_port(value: str) -> str:
    """Accept "host:port" or ":port" (all interfaces)."""
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ValueError(f"listen address must look like host:port, got {value!r}")
    if host.startswith("[") != host.endswith("]"):
        raise ValueError(f"malformed IPv6 listen address {value!r}")
    return value


class WfeSettings(BaseModel):
    """
    Front-end process configuration.

    certificate_chains maps AIA issuer URLs to certificate file names; files
    are read into the chain in the order listed. alternate_certificate_chains
    maps AIA issuer URLs to one optional alternate chain each.
    """

    listen_address: str = Field(description="Plaintext HTTP listener, host:port")
    tls_listen_address: str = Field(default="", description="HTTPS listener, host:port; empty disables TLS")
    server_certificate_path: str = Field(default="", description="PEM certificate for the TLS listener")
    server_key_path: str = Field(default="", description="PEM private key for the TLS listener")

    shutdown_stop_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Drain deadline shared by both listeners after a termination signal",
    )

    certificate_chains: dict[str, list[str]] = Field(
        description="AIA issuer URL → ordered chain file names (default chains)",
    )
    alternate_certificate_chains: dict[str, list[str]] | None = Field(
        default=None,
        description="AIA issuer URL → ordered chain file names (alternate chains)",
    )

    features: dict[str, bool] = Field(default_factory=dict)

    # Passed through to the request handler
    subscriber_agreement_url: str = ""
    allow_origins: list[str] = Field(default_factory=list)
    directory_caa_identity: str = ""
    directory_website: str = ""
    legacy_key_id_prefix: str = ""
    stale_timeout_seconds: float = Field(default=0, ge=0, description="0 means the 10 minute default")
    authorization_lifetime_days: int = Field(default=0, ge=0, description="0 means the 30 day default")
    pending_authorization_lifetime_days: int = Field(default=0, ge=0, description="0 means the 7 day default")

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, value: str) -> str:
        return _validate_host_port(value.strip())

    @field_validator("tls_listen_address")
    @classmethod
    def validate_tls_listen_address(cls, value: str) -> str:
        value = value.strip()
        return _validate_host_port(value) if value else value

    @field_validator("certificate_chains")
    @classmethod
    def validate_certificate_chains(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        if not value:
            raise ValueError("at least one CertificateChains entry is required")
        return value

    @model_validator(mode="after")
    def require_tls_material(self) -> WfeSettings:
        """A TLS listener without a certificate/key pair cannot start."""
        if self.tls_listen_address and not (self.server_certificate_path and self.server_key_path):
            raise ValueError(
                "tls_listen_address is set but server_certificate_path "
                "and server_key_path are not both configured"
            )
        return self

    def handler_settings(self) -> HandlerSettings:
        """Resolve zero-valued operational knobs to their defaults."""
        defaults = HandlerSettings()
        return HandlerSettings(
            stale_timeout_seconds=self.stale_timeout_seconds or defaults.stale_timeout_seconds,
            authorization_lifetime_days=(
                self.authorization_lifetime_days or defaults.authorization_lifetime_days
            ),
            pending_authorization_lifetime_days=(
                self.pending_authorization_lifetime_days
                or defaults.pending_authorization_lifetime_days
            ),
            subscriber_agreement_url=self.subscriber_agreement_url,
            allow_origins=tuple(self.allow_origins),
            directory_caa_identity=self.directory_caa_identity,
            directory_website=self.directory_website,
            legacy_key_id_prefix=self.legacy_key_id_prefix,
        )


class AppSettings(BaseSettings):
    """
    Root application settings.

    Load order (highest priority first):
      1. Values from the JSON config file (passed as init kwargs)
      2. Environment variables
      3. .env file
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    wfe: WfeSettings
    log_level: str = Field(default="INFO")


def load_settings(config_file: str | Path | None = None) -> AppSettings:
    """
    Build AppSettings, seeding it from a JSON config file when one is given.

    Falls back to the WFE_CONFIG_FILE environment variable when `config_file`
    is None. Raises OSError, ValueError or pydantic.ValidationError on bad input;
    the composition root turns any of those into a fatal startup error.
    """
    path = config_file or os.environ.get(CONFIG_FILE_ENV_VAR) or None
    overrides: dict[str, Any] = {}
    if path:
        overrides = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(overrides, dict):
            raise ValueError(f"config file {str(path)!r} must contain a JSON object")
    return AppSettings(**overrides)
