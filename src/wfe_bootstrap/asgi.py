"""
FastAPI application factory — the default request handler served by both listeners.

The ACME endpoints themselves live outside this package. This factory builds
the shell they plug into: it receives the frozen trust material, feature set
and handler settings at construction time, keeps them on app.state, and
answers the operational probes.

  - GET /health: liveness, 200 once trust material is loaded
  - GET /info:   issuer and chain summary, enabled features
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wfe_bootstrap import __version__
from wfe_bootstrap.domain.models import HandlerSettings, TrustMaterial
from wfe_bootstrap.features import FeatureSet

log = structlog.get_logger()


def create_app(
    trust: TrustMaterial,
    features: FeatureSet,
    settings: HandlerSettings,
) -> FastAPI:
    """
    Build the request handler from startup state.

    Satisfies the RequestHandlerFactory port. Nothing stored on app.state
    is mutable, so concurrent requests read it without locking.
    """
    app = FastAPI(
        title="wfe-bootstrap",
        description="ACME web front end — trust material and listener bootstrap",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.trust = trust
    app.state.features = features
    app.state.handler_settings = settings

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """Liveness probe. 503 if the app was built without any issuer chains."""
        trust_material: TrustMaterial = request.app.state.trust
        if not trust_material.chains:
            log.warning("health.check_failed", reason="no certificate chains loaded")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "reason": "no certificate chains loaded"},
            )
        return JSONResponse(status_code=200, content={"status": "healthy"})

    @app.get("/info")
    async def info(request: Request) -> dict[str, Any]:
        """Application metadata, used for debugging and monitoring."""
        trust_material: TrustMaterial = request.app.state.trust
        return {
            "name": "wfe-bootstrap",
            "version": __version__,
            "issuers": {
                issuer: {"chains": len(chain_set)}
                for issuer, chain_set in trust_material.chains.items()
            },
            "issuer_certificates": [
                cert.subject.rfc4514_string() for cert in trust_material.issuer_certificates
            ],
            "features": request.app.state.features.names(),
        }

    return app
