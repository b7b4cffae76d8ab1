"""
Railway-Oriented Programming (ROP) primitives.

Explicit, composable error handling for startup validation — no exceptions
in the assembly logic.

    from railway import Result, ErrorCode

    def require_lf_only(pem: bytes) -> Result[bytes]:
        if b"\\r\\n" in pem:
            return Result.failure(ErrorCode.ENCODING_ERROR, "contents had CRLF line endings")
        return Result.success(pem)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.execution import (
    ExecutionContext,
    NoOpExecutionContext,
    LoggingExecutionContext,
)
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.0.0"
