"""
Shutdown — signal-triggered, bounded, concurrent drain of both listeners.

State machine:

  RUNNING ──(SIGTERM / SIGINT / SIGHUP)──→ DRAINING ──(both drains return)──→ STOPPED

run() blocks the caller until STOPPED, so the process never exits while a
drain is still in progress. A listener that dies on its own while RUNNING
is fatal: its ListenerError propagates out of run().
"""

from __future__ import annotations

import asyncio
import signal
from enum import Enum

import structlog

from wfe_bootstrap.listeners import ListenerError, ListenerPair

log = structlog.get_logger()

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGHUP") if hasattr(signal, name)
)


class ShutdownState(Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


class ShutdownCoordinator:
    """
    Wait for a termination signal, then drain the listener pair within `deadline` seconds.

    Both listeners are drained at the same time, so total drain time is
    bounded by the deadline rather than by the sum of the two drains.
    """

    def __init__(
        self,
        listeners: ListenerPair,
        deadline: float,
        signals: tuple[signal.Signals, ...] = DEFAULT_SIGNALS,
    ) -> None:
        self._listeners = listeners
        self._deadline = deadline
        self._signals = signals
        self._stop = asyncio.Event()
        self._reason = ""
        self.state = ShutdownState.RUNNING

    def request_shutdown(self, reason: str = "requested") -> None:
        """Begin draining; later requests are ignored."""
        if self._stop.is_set():
            log.info("shutdown.already_requested", reason=reason, state=self.state.value)
            return
        self._reason = reason
        self._stop.set()

    def _on_signal(self, signum: signal.Signals) -> None:
        log.info("shutdown.signal_received", signal=signal.Signals(signum).name)
        self.request_shutdown(reason=signal.Signals(signum).name)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self._signals:
            loop.add_signal_handler(sig, self._on_signal, sig)

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self._signals:
            loop.remove_signal_handler(sig)

    async def _wait_for_stop(self) -> None:
        """Return on a shutdown request; raise if a listener dies first."""
        stop_task = asyncio.create_task(self._stop.wait(), name="shutdown-signal-wait")
        watched = {stop_task, *self._listeners.tasks}
        try:
            done, _ = await asyncio.wait(watched, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not stop_task.done():
                stop_task.cancel()

        if stop_task in done:
            return
        for task in done:
            task.result()
        raise ListenerError("listener stopped before shutdown was requested")

    async def run(self) -> None:
        """Block until a shutdown has been requested and both listeners are drained."""
        loop = asyncio.get_running_loop()
        self._install_signal_handlers(loop)
        try:
            await self._wait_for_stop()

            self.state = ShutdownState.DRAINING
            log.info(
                "shutdown.draining",
                reason=self._reason,
                deadline_seconds=self._deadline,
                listeners=[lst.name for lst in self._listeners.listeners],
            )
            start = loop.time()
            await self._listeners.shutdown(self._deadline)
        finally:
            self._remove_signal_handlers(loop)

        self.state = ShutdownState.STOPPED
        log.info("shutdown.stopped", elapsed_seconds=round(loop.time() - start, 3))
