"""
Failure description — structured error information for the failure track.

ErrorCode names the kind of rule that was broken while assembling trust
material or resolving configuration; FailureDescription carries the code, an
operator-facing message, the optional underlying exception and a timestamp.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Error kinds for the failure track.

    Trust-material errors are all fatal at startup; the distinct codes exist
    so that operators (and tests) can tell which rule a chain file broke.
    """

    # --- Trust material ---
    FILE_ERROR = "FILE_ERROR"
    """Chain file missing or unreadable."""

    ENCODING_ERROR = "ENCODING_ERROR"
    """CRLF line endings, or contents that do not decode as PEM."""

    TYPE_MISMATCH_ERROR = "TYPE_MISMATCH_ERROR"
    """PEM block is not a CERTIFICATE."""

    CERTIFICATE_PARSE_ERROR = "CERTIFICATE_PARSE_ERROR"
    """PEM payload is not a well-formed X.509 certificate."""

    TRAILING_DATA_ERROR = "TRAILING_DATA_ERROR"
    """Bytes left over after the PEM block."""

    # --- Process ---
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration (empty chain list, orphan alternate, unknown feature)."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """An exception escaped a computation run in an execution context."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.FILE_ERROR, "chain file missing")
    >>> desc.code
    <ErrorCode.FILE_ERROR: 'FILE_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__))
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
