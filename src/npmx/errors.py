"""Error types surfaced to API clients."""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    UPSTREAM_FETCH_FAILED = "UPSTREAM_FETCH_FAILED"


class NpmxError(Exception):
    """User-visible API error, rendered as ``{"error": {...}}`` by the server."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        status_code: int,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, object]:
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "recoverable": self.recoverable,
            }
        }


class BuildEnvError(RuntimeError):
    """Build info could not be resolved. Fatal at startup."""
