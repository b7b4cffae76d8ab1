"""
Listeners — a plaintext and an optional TLS uvicorn server sharing one handler.

Infrastructure layer. Each Listener wraps a uvicorn.Server whose serve()
coroutine runs as an asyncio task. Signal handling is removed
from uvicorn (the ShutdownCoordinator owns signals for both servers), and a
shutdown is requested through uvicorn's own should_exit flag with
timeout_graceful_shutdown as the drain deadline.

Timeout policy applied to both listeners:
  - read:  30 s to receive the full request body
  - write: 120 s to produce the whole response
  - idle:  120 s keep-alive between requests (uvicorn timeout_keep_alive)

uvicorn's stdlib log output is forwarded into structlog with trailing
newlines stripped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Generator
from dataclasses import dataclass
from typing import Any

import structlog
import uvicorn

from wfe_bootstrap.logging_bridge import forward_stdlib_logs

log = structlog.get_logger()

_TRANSPORT_LOGGERS = ("uvicorn", "uvicorn.error")

# Slack on top of the drain deadline for uvicorn's own 0.1 s ticks and
# connection teardown before a listener task is cancelled outright.
_SHUTDOWN_OVERHEAD_SECONDS = 1.0


class ListenerError(RuntimeError):
    """A listener stopped for any reason other than a requested shutdown."""


@dataclass(frozen=True, slots=True)
class TimeoutPolicy:
    read_seconds: float = 30.0
    write_seconds: float = 120.0
    idle_seconds: float = 120.0


# ─────────────────────── Transport Log Redirect ───────────────────────


def redirect_transport_logs(level: int = logging.INFO) -> None:
    """Route uvicorn's loggers into structlog as listener.transport events."""
    forward_stdlib_logs(_TRANSPORT_LOGGERS, "listener.transport", prefix="asgi server: ", level=level)


# ─────────────────────── Request Timeouts ───────────────────────


class RequestTimeoutMiddleware:
    """
    ASGI wrapper bounding how long one HTTP request may take.

    The request body must arrive within `read_seconds` of the request start,
    and the handler must finish within `write_seconds`. Once the body is
    complete, receive() is passed through untouched so disconnect polling
    keeps working.
    """

    def __init__(self, app: Any, policy: TimeoutPolicy) -> None:
        self.app = app
        self.policy = policy

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        read_deadline = loop.time() + self.policy.read_seconds
        body_complete = False

        async def bounded_receive() -> dict[str, Any]:
            nonlocal body_complete
            if body_complete:
                return await receive()
            async with asyncio.timeout_at(read_deadline):
                message = await receive()
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        try:
            async with asyncio.timeout(self.policy.write_seconds):
                await self.app(scope, bounded_receive, send)
        except TimeoutError:
            log.warning(
                "listener.request_timeout",
                path=scope.get("path"),
                body_complete=body_complete,
            )
            raise


# ─────────────────────── Listener ───────────────────────


class _ManagedServer(uvicorn.Server):
    """uvicorn.Server that leaves process signals to the ShutdownCoordinator."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None, None, None]:
        yield


def split_host_port(address: str) -> tuple[str, int]:
    """Split "host:port"; an empty host means all interfaces."""
    host, _, port = address.rpartition(":")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


class Listener:
    """One uvicorn server bound to one address."""

    def __init__(
        self,
        name: str,
        app: Any,
        address: str,
        policy: TimeoutPolicy,
        ssl_certfile: str | None = None,
        ssl_keyfile: str | None = None,
    ) -> None:
        host, port = split_host_port(address)
        self.name = name
        self.address = address
        config = uvicorn.Config(
            app=RequestTimeoutMiddleware(app, policy),
            host=host,
            port=port,
            ssl_certfile=ssl_certfile,
            ssl_keyfile=ssl_keyfile,
            timeout_keep_alive=int(policy.idle_seconds),
            lifespan="off",
            access_log=False,
            log_config=None,
            server_header=False,
        )
        self._server = _ManagedServer(config)
        self._task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    @property
    def started(self) -> bool:
        return self._server.started

    @property
    def bound_port(self) -> int | None:
        """Actual port once bound (differs from the configured one for port 0)."""
        for server in getattr(self._server, "servers", []):
            for sock in server.sockets:
                return int(sock.getsockname()[1])
        return None

    def start(self) -> None:
        """Begin serving in the background. Must be called inside a running loop."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._serve(), name=f"listener-{self.name}")

    async def _serve(self) -> None:
        log.info("listener.starting", listener=self.name, address=self.address)
        try:
            await self._server.serve()
        except (Exception, SystemExit) as e:
            # uvicorn reports bind failures with sys.exit(1) from inside serve().
            raise ListenerError(
                f"{self.name} listener on {self.address} failed: {e!r}"
            ) from e
        if not self._closing:
            raise ListenerError(f"{self.name} listener on {self.address} stopped unexpectedly")
        log.info("listener.closed", listener=self.name, address=self.address)

    async def wait_until_started(self, timeout: float = 5.0) -> None:
        """Poll until uvicorn reports it is accepting connections."""
        async with asyncio.timeout(timeout):
            while not self._server.started:
                if self._task is not None and self._task.done():
                    self._task.result()
                await asyncio.sleep(0.01)

    async def shutdown(self, deadline: float) -> None:
        """
        Stop accepting connections and drain in-flight requests.

        uvicorn cancels requests still running after `deadline` seconds; if the
        server task has not returned shortly after that, it is cancelled too.
        """
        self._closing = True
        if self._task is None:
            return

        self._server.config.timeout_graceful_shutdown = deadline
        self._server.should_exit = True
        log.info("listener.draining", listener=self.name, deadline_seconds=deadline)

        done, _ = await asyncio.wait({self._task}, timeout=deadline + _SHUTDOWN_OVERHEAD_SECONDS)
        if not done:
            log.warning("listener.drain_timeout", listener=self.name, deadline_seconds=deadline)
            self._server.force_exit = True
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            return
        self._task.result()


# ─────────────────────── Listener Pair ───────────────────────


class ListenerPair:
    """
    Plaintext listener plus an optional TLS listener, both serving `handler`.

    An empty `tls_listen_address` means no TLS listener is created at all.
    A non-empty one requires both `certificate_path` and `key_path`.
    """

    def __init__(
        self,
        handler: Any,
        listen_address: str,
        tls_listen_address: str = "",
        certificate_path: str = "",
        key_path: str = "",
        policy: TimeoutPolicy | None = None,
    ) -> None:
        if tls_listen_address and not (certificate_path and key_path):
            raise ValueError(
                f"TLS listener on {tls_listen_address!r} needs both a certificate and a key path"
            )
        policy = policy or TimeoutPolicy()
        redirect_transport_logs()
        self.http = Listener("http", handler, listen_address, policy)
        self.tls: Listener | None = None
        if tls_listen_address:
            self.tls = Listener(
                "tls",
                handler,
                tls_listen_address,
                policy,
                ssl_certfile=certificate_path,
                ssl_keyfile=key_path,
            )

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return (self.http,) if self.tls is None else (self.http, self.tls)

    @property
    def tasks(self) -> list[asyncio.Task[None]]:
        return [lst.task for lst in self.listeners if lst.task is not None]

    def start(self) -> None:
        for listener in self.listeners:
            listener.start()

    async def shutdown(self, deadline: float) -> None:
        """Drain every listener concurrently; total time is bounded by one deadline."""
        results = await asyncio.gather(
            *(listener.shutdown(deadline) for listener in self.listeners),
            return_exceptions=True,
        )
        for listener, outcome in zip(self.listeners, results):
            if isinstance(outcome, BaseException):
                log.error("listener.shutdown_error", listener=listener.name, error=str(outcome))
