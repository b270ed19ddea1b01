"""Dead-letter classification for failed executions."""

from __future__ import annotations

from typing import Literal

DLQErrorType = Literal[
    "dispatch_failure",
    "validation_error",
    "timeout",
    "network_error",
    "max_retries_exceeded",
    "execution_error",
    "unknown",
]

_TIMEOUT_MARKERS = ("timeout", "timed out", "etimedout", "deadline exceeded")
_NETWORK_MARKERS = (
    "network",
    "econnreset",
    "econnrefused",
    "enotfound",
    "connection reset",
    "connection refused",
    "socket hang up",
    "fetch failed",
)
_RETRY_MARKERS = ("max retries", "retry attempts exhausted")
_EXECUTION_MARKERS = ("execution failed", "agent error")


def classify_error(error_message: str, status_code: int | None = None) -> DLQErrorType:
    """Map an execution error to a DLQ error type.

    HTTP status codes take precedence over message text.
    """
    error = (error_message or "").lower()

    if status_code == 429 or "rate limit" in error:
        return "dispatch_failure"
    if status_code and status_code >= 500:
        return "dispatch_failure"
    if status_code and 400 <= status_code < 500:
        return "validation_error"
    if any(m in error for m in _TIMEOUT_MARKERS):
        return "timeout"
    if any(m in error for m in _NETWORK_MARKERS):
        return "network_error"
    if any(m in error for m in _RETRY_MARKERS):
        return "max_retries_exceeded"
    if any(m in error for m in _EXECUTION_MARKERS):
        return "execution_error"
    return "unknown"


def should_require_manual_review(
    error_type: DLQErrorType, status_code: int | None = None
) -> bool:
    if error_type in ("validation_error", "max_retries_exceeded"):
        return True
    return bool(status_code and 400 <= status_code < 500 and status_code != 429)


def status_code_of(error: BaseException) -> int | None:
    """Best-effort HTTP status from provider exceptions (litellm, httpx)."""
    code = getattr(error, "status_code", None)
    if code is None:
        response = getattr(error, "response", None)
        code = getattr(response, "status_code", None)
    return code if isinstance(code, int) else None
