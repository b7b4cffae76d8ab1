"""
Application entry point — validates trust material, then serves until signalled.

Composition root: the only place where concrete classes are instantiated.

Responsibilities:
  1. Load and validate configuration (env / .env / JSON config file)
  2. Configure structlog for structured logging
  3. Resolve feature flags
  4. Assemble and validate certificate chains (fail-fast, before any socket opens)
  5. Build the request handler from the frozen trust material
  6. Start both listeners and block until the shutdown drain has finished
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import NoReturn, TypeVar

import structlog
from railway import LoggingExecutionContext
from railway.failure import FailureDescription
from railway.result import Result

from wfe_bootstrap import __version__
from wfe_bootstrap.adapters.pem_reader import PemCertificateFileReader
from wfe_bootstrap.asgi import create_app
from wfe_bootstrap.chains import assemble_trust_material
from wfe_bootstrap.config import AppSettings, WfeSettings, load_settings
from wfe_bootstrap.domain.models import TrustMaterial
from wfe_bootstrap.domain.ports import RequestHandlerFactory
from wfe_bootstrap.features import set_features
from wfe_bootstrap.listeners import ListenerError, ListenerPair
from wfe_bootstrap.logging_bridge import forward_stdlib_logs
from wfe_bootstrap.shutdown import ShutdownCoordinator

T = TypeVar("T")


def configure_structlog(log_level: str = "INFO") -> None:
    """Configure structlog, and forward the railway stdlib loggers into it."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    forward_stdlib_logs(("railway",), "execution_context", level=level)


def fail(message: str, failure: FailureDescription | None = None) -> NoReturn:
    """Log a fatal startup error and exit non-zero."""
    log = structlog.get_logger()
    log.error("app.fatal_error", message=message, error=str(failure) if failure else None)
    if failure is not None and failure.exception is not None:
        log.debug("app.fatal_error_detail", trace=failure.full_stack_trace())
    sys.exit(1)


def fail_on_error(result: Result[T], message: str) -> T:
    """Unwrap a Result, or terminate the process with a descriptive diagnostic."""
    if result.is_failure():
        fail(message, result.error())
    return result.value()


def build_trust_material(wfe: WfeSettings) -> Result[TrustMaterial]:
    """Assemble certificate chains within a logging execution context."""
    ctx = LoggingExecutionContext(operation="TrustMaterialAssembly")
    return ctx.execute(
        lambda: assemble_trust_material(
            wfe.certificate_chains,
            wfe.alternate_certificate_chains,
            PemCertificateFileReader(),
        )
    )


def build_listeners(wfe: WfeSettings, handler: object) -> ListenerPair:
    return ListenerPair(
        handler,
        listen_address=wfe.listen_address,
        tls_listen_address=wfe.tls_listen_address,
        certificate_path=wfe.server_certificate_path,
        key_path=wfe.server_key_path,
    )


async def serve(listeners: ListenerPair, deadline: float) -> None:
    """Start both listeners and return once a signal-triggered drain completes."""
    coordinator = ShutdownCoordinator(listeners, deadline)
    listeners.start()
    await coordinator.run()


def main(handler_factory: RequestHandlerFactory = create_app) -> None:
    """Validate everything, then serve until a termination signal arrives."""
    try:
        settings: AppSettings = load_settings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    wfe = settings.wfe

    log.info("app.starting", version=__version__, log_level=settings.log_level)

    features = fail_on_error(set_features(wfe.features), "Failed to set feature flags")

    trust = fail_on_error(
        build_trust_material(wfe),
        "Couldn't read configured CertificateChains / AlternateCertificateChains",
    )
    log.info(
        "trust.assembled",
        issuers=len(trust.chains),
        issuer_certificates=len(trust.issuer_certificates),
        alternates=sum(len(chain_set) - 1 for chain_set in trust.chains.values()),
    )

    handler = handler_factory(trust, features, wfe.handler_settings())

    log.info(
        "app.listening",
        listen_address=wfe.listen_address,
        tls_listen_address=wfe.tls_listen_address or None,
    )
    listeners = build_listeners(wfe, handler)

    try:
        asyncio.run(serve(listeners, wfe.shutdown_stop_timeout_seconds))
    except ListenerError as e:
        log.error("app.fatal_error", message="Running listener", error=str(e))
        sys.exit(1)

    log.info("app.shutdown_complete")


if __name__ == "__main__":
    main()
