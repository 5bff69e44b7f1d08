"""Exception hierarchy for llmcli.

Every error that aborts an invocation derives from LLMCliError so the CLI
can report it and exit non-zero in one place.
"""

from __future__ import annotations


class LLMCliError(Exception):
    """Base exception for all application-specific errors."""


class MissingCredentialError(LLMCliError):
    """Raised when no API key is configured anywhere."""


class MissingFileError(LLMCliError):
    """Raised when a prompt references a file that does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class NetworkFailureError(LLMCliError):
    """Raised when the HTTP request fails or returns a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedEventPayloadError(LLMCliError):
    """Raised when a streamed event payload is not a valid completion delta."""

    def __init__(self, payload: str, reason: str = "invalid JSON") -> None:
        preview = payload if len(payload) <= 80 else payload[:77] + "..."
        super().__init__(f"Malformed event payload ({reason}): {preview!r}")
        self.payload = payload


class StreamBufferOverflowError(LLMCliError):
    """Raised when an unterminated SSE line outgrows the decoder's cap."""
