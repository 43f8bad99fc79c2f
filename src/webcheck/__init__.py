"""webcheck package bootstrap.

Exposes package metadata together with the public diagnostic surface so that
callers embedding the engine can ``from webcheck import WebRequestDiagnostic``.
"""
from __future__ import annotations

# NOTE: The version is duplicated in ``pyproject.toml`` and managed by Hatch.
__version__ = "0.1.0"

from .diagnostic import WebRequestDiagnostic, build_diagnostic  # noqa: E402
from .errors import (  # noqa: E402
    DiagnosticConfigError,
    ErrorKind,
    InvocationMisuseError,
    StatusCodeParseError,
    TransportError,
    WebCheckError,
)
from .group import GroupResult, WebRequestGroup  # noqa: E402
from .models import ProbeResult, ProbeStatus, Subresult  # noqa: E402
from .status_codes import StatusCodePolicy, parse_status_codes  # noqa: E402
from .transport import (  # noqa: E402
    HTTPRequest,
    HTTPResponse,
    Method,
    RequestsTransport,
    Transport,
    TransportOptions,
)

__all__ = [
    "__version__",
    "DiagnosticConfigError",
    "ErrorKind",
    "GroupResult",
    "HTTPRequest",
    "HTTPResponse",
    "InvocationMisuseError",
    "Method",
    "ProbeResult",
    "ProbeStatus",
    "RequestsTransport",
    "StatusCodeParseError",
    "StatusCodePolicy",
    "Subresult",
    "Transport",
    "TransportError",
    "TransportOptions",
    "WebCheckError",
    "WebRequestDiagnostic",
    "WebRequestGroup",
    "build_diagnostic",
    "parse_status_codes",
]
