"""Error taxonomy shared by the diagnostic engine."""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Category attached to every :class:`WebCheckError`."""

    CONFIGURATION = "configuration"
    INVOCATION_MISUSE = "invocation-misuse"
    TRANSPORT = "transport"


class WebCheckError(RuntimeError):
    """Base class for errors raised by webcheck."""

    kind: ErrorKind = ErrorKind.CONFIGURATION


class DiagnosticConfigError(WebCheckError):
    """Raised when a diagnostic is constructed with invalid parameters."""

    kind = ErrorKind.CONFIGURATION


class StatusCodeParseError(DiagnosticConfigError):
    """Raised when a status code expression cannot be parsed."""

    def __init__(self, message: str, *, token: str | None = None) -> None:
        """Record the offending *token* alongside the message."""
        super().__init__(message)
        self.token = token


class InvocationMisuseError(WebCheckError):
    """Raised when a check entry point is invoked without an instance."""

    kind = ErrorKind.INVOCATION_MISUSE


class TransportError(WebCheckError):
    """Raised when the transport could not produce any HTTP response."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, url: str | None = None) -> None:
        """Record the *url* that was being requested."""
        super().__init__(message)
        self.url = url


__all__ = [
    "DiagnosticConfigError",
    "ErrorKind",
    "InvocationMisuseError",
    "StatusCodeParseError",
    "TransportError",
    "WebCheckError",
]
