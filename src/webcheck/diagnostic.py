"""Web request diagnostic: one HTTP round trip, classified.

A :class:`WebRequestDiagnostic` is configured once and can be run many
times. Each run dispatches a single request through a :class:`Transport`,
checks the status code against the configured acceptance policy and, only when
that check passes, the optional response time threshold and content regex.
"""
from __future__ import annotations

import functools
import logging
import re
import time
import types
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from typing import Any

from .errors import DiagnosticConfigError, InvocationMisuseError
from .models import ProbeResult, ProbeStatus, Subresult, combine_subresults
from .status_codes import StatusCodePolicy, parse_status_codes
from .transport import (
    HTTPRequest,
    HTTPResponse,
    Method,
    RequestData,
    RequestsTransport,
    Transport,
    TransportOptions,
    build_user_agent,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_LABEL = "web_request"

ALLOWED_PARAMETERS = frozenset(
    {
        "content_regex",
        "data",
        "headers",
        "id",
        "label",
        "method",
        "no_follow_redirects",
        "options",
        "request",
        "response_time_threshold",
        "status_code",
        "tags",
        "timeout",
        "transport",
        "url",
        "user_agent",
    }
)

ALLOWED_OPTION_KEYS = frozenset({"timeout", "user_agent", "agent", "verify", "proxies"})

PROXY_ERROR_HEADER = "X-Squid-Error"
CLIENT_WARNING_HEADER = "Client-Warning"


class instance_only:  # noqa: N801 - used as a decorator
    """Decorator rejecting calls made through the class instead of an instance."""

    def __init__(self, func: Callable[..., Any]) -> None:
        """Wrap *func*."""
        self._func = func
        self._name = func.__name__
        functools.update_wrapper(self, func)

    def __set_name__(self, owner: type, name: str) -> None:
        self._name = name

    def __get__(self, instance: object | None, owner: type | None = None) -> Callable[..., Any]:
        if instance is not None:
            return types.MethodType(self._func, instance)

        def _unbound(*args: Any, **kwargs: Any) -> Any:
            if owner is not None and args and isinstance(args[0], owner):
                return self._func(*args, **kwargs)
            class_name = owner.__name__ if owner is not None else "class"
            raise InvocationMisuseError(
                f"{class_name}.{self._name} cannot be called as a class method"
            )

        return _unbound


def _duration_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _compile_content_regex(value: object) -> re.Pattern[str] | None:
    if value is None:
        return None
    if isinstance(value, re.Pattern):
        if not isinstance(value.pattern, str):
            raise DiagnosticConfigError("content_regex must be a text pattern, not bytes.")
        return value
    if isinstance(value, str):
        try:
            return re.compile(value)
        except re.error as exc:
            raise DiagnosticConfigError(f"Invalid content_regex {value!r}: {exc}.") from exc
    raise DiagnosticConfigError(
        f"content_regex must be a string or compiled pattern, got {type(value).__name__}."
    )


def _positive_number(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DiagnosticConfigError(f"{label} must be a number, got {value!r}.")
    number = float(value)
    if number <= 0:
        raise DiagnosticConfigError(f"{label} must be greater than zero, got {number}.")
    return number


def _normalise_tags(tags: str | Sequence[str] | None) -> tuple[str, ...]:
    if tags is None:
        return ()
    if isinstance(tags, str):
        return (tags,)
    return tuple(str(tag) for tag in tags)


def _build_options(
    options: Mapping[str, object] | TransportOptions | None,
    *,
    timeout: float | None,
    user_agent: str | None,
    no_follow_redirects: bool,
) -> TransportOptions:
    if isinstance(options, TransportOptions):
        base = options
        raw: Mapping[str, object] = {}
    else:
        base = TransportOptions()
        raw = dict(options or {})
        unknown = set(raw) - ALLOWED_OPTION_KEYS
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise DiagnosticConfigError(f"Unknown transport options: {joined}.")

    timeout_value = timeout if timeout is not None else raw.get("timeout", base.timeout)
    agent_value = user_agent or raw.get("user_agent") or raw.get("agent")
    if agent_value is None and base.user_agent:
        agent_value = base.user_agent
    if agent_value is not None and not isinstance(agent_value, str):
        raise DiagnosticConfigError(f"user_agent must be a string, got {agent_value!r}.")

    verify = raw.get("verify", base.verify)
    if not isinstance(verify, (bool, str)):
        raise DiagnosticConfigError(f"verify must be a boolean or CA bundle path, got {verify!r}.")
    proxies = raw.get("proxies", base.proxies)
    if proxies is not None and not isinstance(proxies, Mapping):
        raise DiagnosticConfigError("proxies must be a mapping of scheme to proxy URL.")

    return TransportOptions(
        timeout=_positive_number(timeout_value, "timeout"),
        user_agent=build_user_agent(agent_value),
        follow_redirects=base.follow_redirects and not no_follow_redirects,
        verify=verify,
        proxies=proxies,
    )


def _response_note(response: HTTPResponse) -> str | None:
    proxy_error = response.headers.get(PROXY_ERROR_HEADER)
    if proxy_error:
        return f"from proxy: {proxy_error}"
    client_warning = response.headers.get(CLIENT_WARNING_HEADER)
    if client_warning and client_warning.strip().lower() == "internal response":
        return "from internal response"
    return None


class WebRequestDiagnostic:
    """Make an HTTP/HTTPS request and check the response.

    Either ``url`` (with optional ``method``, ``data`` and ``headers``) or a
    prebuilt ``request`` must be supplied. ``status_code`` accepts a single
    code or an expression understood by :func:`parse_status_codes`; it
    defaults to 200. ``content_regex`` is only checked when the status check
    passes, as is ``response_time_threshold`` (seconds; slower responses are
    reported as ``WARNING``).

    Unknown keyword arguments raise :class:`TypeError`; use :meth:`from_config`
    to build from a loosely validated mapping, which logs and ignores unknown
    keys instead.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        request: HTTPRequest | None = None,
        method: str | Method | None = None,
        data: RequestData | None = None,
        headers: Mapping[str, str] | None = None,
        status_code: str | int | StatusCodePolicy | None = None,
        content_regex: str | re.Pattern[str] | None = None,
        response_time_threshold: float | None = None,
        no_follow_redirects: bool = False,
        timeout: float | None = None,
        user_agent: str | None = None,
        options: Mapping[str, object] | TransportOptions | None = None,
        transport: Transport | None = None,
        id: str | int | None = None,  # noqa: A002 - mirrors the result field
        label: str | None = DEFAULT_LABEL,
        tags: str | Sequence[str] | None = (),
    ) -> None:
        """Validate the configuration and prepare the request."""
        if url is None and request is None:
            raise DiagnosticConfigError("No url specified!")
        if url is not None and request is not None:
            raise DiagnosticConfigError("Specify either url or request, not both.")

        if request is not None:
            if not isinstance(request, HTTPRequest):
                raise DiagnosticConfigError(
                    f"request must be an HTTPRequest, got {type(request).__name__}."
                )
            if method is not None or data is not None or headers is not None:
                raise DiagnosticConfigError(
                    "method, data and headers apply only when url is given."
                )
            self._request = request
        else:
            if not isinstance(url, str) or not url.strip():
                raise DiagnosticConfigError("url must be a non-empty string.")
            if headers is not None and not isinstance(headers, Mapping):
                raise DiagnosticConfigError("headers must be a mapping.")
            if data is not None and not isinstance(data, (Mapping, str, bytes)):
                raise DiagnosticConfigError("data must be a mapping, string or bytes.")
            self._request = HTTPRequest(
                url=url.strip(),
                method=Method.parse(method if method is not None else Method.GET),
                headers={str(key): str(value) for key, value in (headers or {}).items()},
                data=data,
            )

        self._policy = parse_status_codes(status_code)
        self._content_regex = _compile_content_regex(content_regex)
        self._response_time_threshold = (
            _positive_number(response_time_threshold, "response_time_threshold")
            if response_time_threshold is not None
            else None
        )
        self._options = _build_options(
            options,
            timeout=timeout,
            user_agent=user_agent,
            no_follow_redirects=bool(no_follow_redirects),
        )
        if transport is None:
            transport = RequestsTransport()
        elif not isinstance(transport, Transport):
            raise DiagnosticConfigError(
                f"transport must provide a send() method, got {type(transport).__name__}."
            )
        self._transport: Transport = transport
        self.id = str(id) if id is not None else None
        self.label = str(label) if label is not None else None
        self.tags = _normalise_tags(tags)

    @classmethod
    def from_config(cls, params: Mapping[str, object]) -> WebRequestDiagnostic:
        """Build a diagnostic from a configuration mapping.

        Unknown keys are reported through a warning and otherwise ignored.
        """
        unknown = sorted(set(params) - ALLOWED_PARAMETERS)
        if unknown:
            LOGGER.warning("Invalid parameter: %s", ", ".join(unknown))
        known = {key: value for key, value in params.items() if key in ALLOWED_PARAMETERS}
        return cls(**known)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    @property
    def url(self) -> str:
        """Return the requested URL."""
        return self._request.url

    @property
    def request(self) -> HTTPRequest:
        """Return the request dispatched on every run."""
        return self._request

    @property
    def method(self) -> Method:
        """Return the HTTP method."""
        return self._request.method

    @property
    def status_code(self) -> StatusCodePolicy:
        """Return the acceptance policy for response status codes."""
        return self._policy

    @property
    def content_regex(self) -> re.Pattern[str] | None:
        """Return the compiled content pattern, if any."""
        return self._content_regex

    @property
    def response_time_threshold(self) -> float | None:
        """Return the response time threshold in seconds, if any."""
        return self._response_time_threshold

    @property
    def options(self) -> TransportOptions:
        """Return the options passed to the transport."""
        return self._options

    # ------------------------------------------------------------------
    @instance_only
    def check(self) -> ProbeResult:
        """Run the diagnostic and stamp the result with its metadata."""
        start = time.perf_counter()
        result = self.run()
        return replace(
            result,
            id=self.id,
            label=self.label,
            tags=self.tags,
            duration_ms=_duration_ms(start),
        )

    @instance_only
    def run(self) -> ProbeResult:
        """Dispatch the request once and classify the response."""
        LOGGER.debug("Requesting %s %s", self._request.method.value, self._request.url)
        start = time.perf_counter()
        response = self._transport.send(self._request, self._options)
        elapsed = response.elapsed if response.elapsed is not None else time.perf_counter() - start

        results = [self.check_status(response)]
        if results[0].status is ProbeStatus.OK:
            timing = self.check_response_time(elapsed)
            if timing is not None:
                results.append(timing)
            content = self.check_content(response)
            if content is not None:
                results.append(content)

        result = combine_subresults(results)
        if result.status is not ProbeStatus.OK:
            LOGGER.info("%s: %s", result.status.value, result.info)
        return result

    def check_status(self, response: HTTPResponse) -> Subresult:
        """Compare the response status code against the acceptance policy."""
        code = response.status_code
        accepted = self._policy.evaluate(code)
        if accepted:
            info = f"Requested {self.url} and got expected status code {code}"
            return Subresult(status=ProbeStatus.OK, info=info)

        info = f"Requested {self.url} and got status code {code}, expected {self._policy}"
        note = _response_note(response)
        if note:
            info += f" ({note})"
        return Subresult(status=ProbeStatus.CRITICAL, info=info)

    def check_response_time(self, elapsed: float) -> Subresult | None:
        """Compare *elapsed* seconds against the response time threshold."""
        threshold = self._response_time_threshold
        if threshold is None:
            return None
        if elapsed <= threshold:
            return Subresult(status=ProbeStatus.OK, info=f"Request took {elapsed:.3f}s")
        return Subresult(
            status=ProbeStatus.WARNING,
            info=f"Request took {elapsed:.3f}s, exceeding threshold of {threshold:g}s",
        )

    def check_content(self, response: HTTPResponse) -> Subresult | None:
        """Search the response body for the content regex."""
        pattern = self._content_regex
        if pattern is None:
            return None
        if pattern.search(response.text):
            return Subresult(
                status=ProbeStatus.OK,
                info=f"Response content matches /{pattern.pattern}/",
            )
        return Subresult(
            status=ProbeStatus.CRITICAL,
            info=f"Response content does not match /{pattern.pattern}/",
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(method={self.method.value!r}, url={self.url!r}, "
            f"status_code={str(self._policy)!r})"
        )


def build_diagnostic(
    entry: WebRequestDiagnostic | Mapping[str, object],
    defaults: Mapping[str, object] | None = None,
) -> WebRequestDiagnostic:
    """Normalise *entry* to a :class:`WebRequestDiagnostic`.

    Ready instances are returned untouched; *defaults* only apply to mappings,
    with the mapping's own keys taking precedence.
    """
    if isinstance(entry, WebRequestDiagnostic):
        return entry
    if isinstance(entry, Mapping):
        merged: dict[str, object] = dict(defaults or {})
        merged.update(entry)
        return WebRequestDiagnostic.from_config(merged)
    raise DiagnosticConfigError(
        f"Each check must be a mapping or WebRequestDiagnostic, got {type(entry).__name__}."
    )


__all__ = [
    "ALLOWED_PARAMETERS",
    "DEFAULT_LABEL",
    "WebRequestDiagnostic",
    "build_diagnostic",
    "instance_only",
]
