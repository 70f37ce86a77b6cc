"""Standardized error types for the explanation pipeline.

Fatal kinds are caught at the request boundary and turned into a short
status line plus detail text in the result pane. Non-fatal kinds never
reach the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for error codes surfaced in events and logs."""

    SETTINGS_UNAVAILABLE = "settings_unavailable"
    CONFIG_MISSING = "config_missing"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MALFORMED_CHUNK = "malformed_chunk"
    STRUCTURE_MISMATCH = "structure_mismatch"
    INTERNAL_ERROR = "internal_error"


# -----------------------------------------------------------------------------
# Base Error Class
# -----------------------------------------------------------------------------

@dataclass
class ExplainError(Exception):
    """Base exception for all explanation failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    fatal: ClassVar[bool] = True
    status_message: ClassVar[str] = "AI request failed."

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "fatal": self.fatal,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


# -----------------------------------------------------------------------------
# Fatal errors
# -----------------------------------------------------------------------------

class SettingsUnavailableError(ExplainError):
    """Raised when the settings provider cannot produce a snapshot."""

    status_message = "AI settings unavailable."

    def __init__(self, message: str = "AI settings unavailable", **details: Any) -> None:
        super().__init__(ErrorCode.SETTINGS_UNAVAILABLE, message, dict(details))


class ConfigMissingError(ExplainError):
    """Raised when the completion endpoint URL is empty."""

    def __init__(self, message: str = "AI API URL not configured") -> None:
        super().__init__(ErrorCode.CONFIG_MISSING, message)


class HttpStatusError(ExplainError):
    """Raised for a non-2xx completion response."""

    def __init__(self, status_code: int, body_excerpt: str) -> None:
        super().__init__(
            ErrorCode.HTTP_ERROR,
            f"AI request failed ({status_code}): {body_excerpt}",
            {"status_code": status_code, "body_excerpt": body_excerpt},
        )
        self.status_code = status_code
        self.body_excerpt = body_excerpt


class RequestTimeoutError(ExplainError):
    """Raised when the completion does not finish inside the wall-clock budget."""

    status_message = "AI request timed out."

    def __init__(self, timeout: float) -> None:
        super().__init__(
            ErrorCode.TIMEOUT,
            "AI request timed out",
            {"timeout_seconds": timeout},
        )
        self.timeout = timeout


class NetworkError(ExplainError):
    """Raised for transport failures (DNS, refused connection, reset)."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.NETWORK_ERROR, message)


# -----------------------------------------------------------------------------
# Non-fatal errors
# -----------------------------------------------------------------------------

class MalformedChunkError(ExplainError):
    """A single event-stream line could not be decoded; the line is skipped."""

    fatal = False

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(
            ErrorCode.MALFORMED_CHUNK,
            f"Malformed stream line skipped: {reason}",
            {"line": line[:200]},
        )


class StructureMismatchError(ExplainError):
    """A parsed explanation carried fields of the wrong type; they are omitted."""

    fatal = False

    def __init__(self, fields: list[str]) -> None:
        super().__init__(
            ErrorCode.STRUCTURE_MISMATCH,
            "Explanation fields ignored: " + ", ".join(fields),
            {"fields": list(fields)},
        )
        self.fields = list(fields)


__all__ = [
    "ErrorCode",
    "ExplainError",
    "SettingsUnavailableError",
    "ConfigMissingError",
    "HttpStatusError",
    "RequestTimeoutError",
    "NetworkError",
    "MalformedChunkError",
    "StructureMismatchError",
]
