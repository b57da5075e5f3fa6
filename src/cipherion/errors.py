"""Exception types raised by the Cipherion client and migration engine."""

from typing import Any

import httpx

# Statuses worth retrying at the transport level (0 = no response received)
RETRYABLE_STATUS_CODES = (0, 408, 429)


class CipherionError(Exception):
    """
    Error raised for any failed Cipherion operation.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code (0 when no response was received)
        details: Optional extra detail returned by the API
        original_error: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: str | None = None,
        original_error: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
        self.original_error = original_error

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"

    def is_retryable(self) -> bool:
        """Return True for network failures, timeouts, rate limits and 5xx responses."""
        return self.status_code in RETRYABLE_STATUS_CODES or self.status_code >= 500

    @classmethod
    def from_response(cls, body: Any, status_code: int | None = None) -> "CipherionError":
        """Build an error from a decoded API error body."""
        if not isinstance(body, dict):
            return cls("Unknown API error", status_code or 500, details=str(body)[:500])

        error_block = body.get("error")
        details = error_block.get("details") if isinstance(error_block, dict) else None
        return cls(
            body.get("message") or "Unknown API error",
            status_code or body.get("statusCode") or 500,
            details,
        )

    @classmethod
    def from_http_error(cls, exc: BaseException) -> "CipherionError":
        """Wrap a transport-level exception (no usable response)."""
        if isinstance(exc, httpx.HTTPStatusError):
            try:
                body = exc.response.json()
            except ValueError:
                body = {}
            error = cls.from_response(body, exc.response.status_code)
            error.original_error = exc
            return error
        if isinstance(exc, httpx.TransportError):
            return cls("Network error - no response received", 0, original_error=exc)
        return cls("Request setup error", 0, details=str(exc), original_error=exc)


class ConfigurationError(CipherionError, ValueError):
    """Invalid client configuration or migration options, raised before any work starts."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message, 400, details)
