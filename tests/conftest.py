"""Pytest configuration helpers for the test suite."""

from __future__ import annotations

from collections.abc import Callable, Mapping

import pytest

from webcheck.errors import TransportError
from webcheck.transport import HTTPRequest, HTTPResponse, TransportOptions


class FakeTransport:
    """Transport stub returning a canned response and recording requests."""

    def __init__(
        self,
        response: HTTPResponse | None = None,
        *,
        error: TransportError | None = None,
    ) -> None:
        """Store the canned *response* or the *error* to raise."""
        self.response = response
        self.error = error
        self.sent: list[tuple[HTTPRequest, TransportOptions]] = []

    def send(self, request: HTTPRequest, options: TransportOptions) -> HTTPResponse:
        """Record the request and return the canned response."""
        self.sent.append((request, options))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


FakeTransportFactory = Callable[..., FakeTransport]


@pytest.fixture()
def fake_transport() -> FakeTransportFactory:
    """Return a factory building fake transports for canned responses."""

    def _make(
        status_code: int = 200,
        body: bytes | str = b"",
        *,
        headers: Mapping[str, str] | None = None,
        elapsed: float | None = 0.05,
        error: TransportError | None = None,
    ) -> FakeTransport:
        if error is not None:
            return FakeTransport(error=error)
        payload = body.encode("utf-8") if isinstance(body, str) else body
        response = HTTPResponse(
            status_code=status_code,
            headers=dict(headers or {}),
            body=payload,
            elapsed=elapsed,
        )
        return FakeTransport(response)

    return _make
