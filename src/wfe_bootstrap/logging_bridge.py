"""
Logging bridge — forward stdlib loggers into structlog.

Third-party code (uvicorn) and the railway execution contexts log through
the standard library. Their loggers get a StructlogForwardHandler and stop
propagating, so every record ends up in the one structlog output configured
by main.configure_structlog.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import structlog

log = structlog.get_logger()


class StructlogForwardHandler(logging.Handler):
    """
    Re-emit stdlib log records as structlog events.

    Trailing newlines are stripped so each record stays on one line. An
    attached exception travels as exc_info so the renderer prints its traceback.
    """

    def __init__(self, event: str, prefix: str = "") -> None:
        super().__init__()
        self.event = event
        self.prefix = prefix

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage().rstrip("\n")
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        extra: dict[str, Any] = {}
        if record.exc_info:
            extra["exc_info"] = record.exc_info
        log.log(
            record.levelno,
            self.event,
            message=f"{self.prefix}{message}",
            logger=record.name,
            **extra,
        )


def forward_stdlib_logs(
    names: Iterable[str],
    event: str,
    prefix: str = "",
    level: int = logging.INFO,
) -> None:
    """Attach a StructlogForwardHandler to each named logger (idempotent)."""
    for name in names:
        logger = logging.getLogger(name)
        if not any(isinstance(h, StructlogForwardHandler) for h in logger.handlers):
            logger.addHandler(StructlogForwardHandler(event, prefix))
        logger.setLevel(level)
        logger.propagate = False
