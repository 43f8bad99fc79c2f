"""HTTP transport capability consumed by the diagnostic engine."""
from __future__ import annotations

import codecs
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

import requests
from requests.structures import CaseInsensitiveDict

from . import __version__
from .errors import DiagnosticConfigError, TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 7.0
AGENT_IDENTIFIER = f"webcheck/{__version__}"

RequestData = Mapping[str, object] | str | bytes


class Method(str, Enum):
    """HTTP methods supported by web request diagnostics."""

    GET = "GET"
    POST = "POST"
    HEAD = "HEAD"

    @classmethod
    def parse(cls, value: str | Method) -> Method:
        """Return the method named by *value*, matched case-insensitively."""
        if isinstance(value, Method):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        allowed = ", ".join(method.value for method in cls)
        raise DiagnosticConfigError(f"Unrecognized method {value!r}. Allowed: {allowed}.")


@dataclass(slots=True, frozen=True)
class HTTPRequest:
    """A fully described HTTP request."""

    url: str
    method: Method = Method.GET
    headers: Mapping[str, str] = field(default_factory=dict)
    data: RequestData | None = None


@dataclass(slots=True, frozen=True)
class HTTPResponse:
    """Status code, headers and body returned by a transport."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    elapsed: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers))

    @property
    def encoding(self) -> str:
        """Return the charset declared in ``Content-Type``, defaulting to UTF-8."""
        content_type = self.headers.get("Content-Type") or ""
        if "charset" not in content_type.lower():
            return "utf-8"
        declared = requests.utils.get_encoding_from_headers(self.headers)
        if not declared:
            return "utf-8"
        try:
            return codecs.lookup(declared).name
        except LookupError:
            LOGGER.debug("Unknown charset %r, decoding body as UTF-8", declared)
            return "utf-8"

    @property
    def text(self) -> str:
        """Return the body decoded with :attr:`encoding`, replacing undecodable bytes."""
        return self.body.decode(self.encoding, errors="replace")


@dataclass(slots=True, frozen=True)
class TransportOptions:
    """Runtime tunables handed to the transport for each request."""

    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = AGENT_IDENTIFIER
    follow_redirects: bool = True
    verify: bool | str = True
    proxies: Mapping[str, str] | None = None


def build_user_agent(user_agent: str | None) -> str:
    """Return *user_agent* with the webcheck identifier appended."""
    if not user_agent or not user_agent.strip():
        return AGENT_IDENTIFIER
    text = user_agent.strip()
    if text.endswith(AGENT_IDENTIFIER):
        return text
    return f"{text} {AGENT_IDENTIFIER}"


@runtime_checkable
class Transport(Protocol):
    """Capability that performs a single HTTP round trip."""

    def send(self, request: HTTPRequest, options: TransportOptions) -> HTTPResponse:
        """Send *request* and return the response, or raise :class:`TransportError`."""
        ...


@dataclass(slots=True)
class RequestsTransport:
    """Transport backed by a short-lived :class:`requests.Session`."""

    session_factory: Callable[[], requests.Session] = requests.Session

    def send(self, request: HTTPRequest, options: TransportOptions) -> HTTPResponse:
        """Send *request* using ``requests`` and wrap the response."""
        headers = {"User-Agent": options.user_agent, **dict(request.headers)}
        LOGGER.debug("Sending %s %s (timeout=%s)", request.method.value, request.url, options.timeout)
        session = self.session_factory()
        try:
            response = session.request(
                request.method.value,
                request.url,
                headers=headers,
                data=request.data,
                timeout=options.timeout,
                allow_redirects=options.follow_redirects,
                verify=options.verify,
                proxies=dict(options.proxies) if options.proxies else None,
            )
        except requests.exceptions.RequestException as exc:
            raise TransportError(
                f"Request to {request.url} failed: {exc}",
                url=request.url,
            ) from exc
        finally:
            session.close()

        return HTTPResponse(
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=response.content or b"",
            elapsed=response.elapsed.total_seconds() if response.elapsed is not None else None,
        )


__all__ = [
    "AGENT_IDENTIFIER",
    "DEFAULT_TIMEOUT",
    "HTTPRequest",
    "HTTPResponse",
    "Method",
    "RequestsTransport",
    "Transport",
    "TransportOptions",
    "build_user_agent",
]
