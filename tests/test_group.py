"""Tests for grouping several web request diagnostics."""

from __future__ import annotations

import logging

import pytest

from tests.conftest import FakeTransportFactory
from webcheck.diagnostic import WebRequestDiagnostic
from webcheck.errors import DiagnosticConfigError, InvocationMisuseError, TransportError
from webcheck.group import WebRequestGroup
from webcheck.models import ProbeStatus


def test_group_runs_checks_in_order(fake_transport: FakeTransportFactory) -> None:
    """Results keep declaration order and the summary reflects the worst one."""
    group = WebRequestGroup(
        [
            {"id": "foo", "url": "https://foo.example", "transport": fake_transport(200)},
            {"id": "bar", "url": "https://bar.example", "transport": fake_transport(500)},
            {"id": "baz", "url": "https://baz.example", "transport": fake_transport(200)},
        ]
    )

    outcome = group.check()

    assert [result.id for result in outcome.results] == ["foo", "bar", "baz"]
    assert outcome.summary.status is ProbeStatus.CRITICAL
    assert outcome.summary.totals[ProbeStatus.OK] == 2
    assert outcome.summary.totals[ProbeStatus.CRITICAL] == 1
    assert outcome.label == "web_requests"


def test_shared_defaults_apply_to_mappings_only(fake_transport: FakeTransportFactory) -> None:
    """Shared settings inflate mappings but never touch ready instances."""
    transport = fake_transport(202)
    ready = WebRequestDiagnostic(url="https://ready.example", transport=transport)
    group = WebRequestGroup(
        [
            {"url": "https://foo.example"},
            {"url": "https://bar.example", "status_code": 200},
            ready,
        ],
        status_code="200, 202",
        tags=["default_tag"],
        label="default_label",
        transport=transport,
    )

    foo, bar, kept = group.diagnostics

    assert str(foo.status_code) == "200, 202"
    assert str(bar.status_code) == "200"
    assert kept is ready
    assert kept.tags == ()
    assert foo.tags == ("default_tag",)
    assert foo.label == "default_label"
    assert group.label == "default_label"

    statuses = [result.status for result in group.check().results]
    assert statuses == [ProbeStatus.OK, ProbeStatus.CRITICAL, ProbeStatus.CRITICAL]


def test_nested_check_lists_are_flattened(fake_transport: FakeTransportFactory) -> None:
    """Nested sequences keep their relative order."""
    transport = fake_transport()
    group = WebRequestGroup(
        [
            {"url": "https://one.example"},
            [{"url": "https://two.example"}, [{"url": "https://three.example"}]],
        ],
        transport=transport,
    )

    assert [diagnostic.url for diagnostic in group.diagnostics] == [
        "https://one.example",
        "https://two.example",
        "https://three.example",
    ]


def test_empty_group_is_rejected() -> None:
    """A group needs at least one check."""
    with pytest.raises(DiagnosticConfigError):
        WebRequestGroup([])


def test_unknown_shared_keys_warn(
    fake_transport: FakeTransportFactory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Unknown shared settings are reported and dropped."""
    with caplog.at_level(logging.WARNING, logger="webcheck.group"):
        group = WebRequestGroup(
            [{"url": "https://foo.example"}],
            transport=fake_transport(),
            runbook="https://wiki.example/runbook",
        )

    assert "Invalid parameter: runbook" in caplog.text
    assert "runbook" not in group.defaults


def test_register_accepts_only_diagnostics(fake_transport: FakeTransportFactory) -> None:
    """Registered checks must already be diagnostics."""
    transport = fake_transport()
    group = WebRequestGroup([{"url": "https://foo.example"}], transport=transport)

    group.register(WebRequestDiagnostic(url="https://bar.example", transport=transport))
    assert len(group) == 2

    with pytest.raises(DiagnosticConfigError):
        group.register([{"url": "https://baz.example"}])  # type: ignore[list-item]
    assert len(group) == 2


def test_transport_failure_aborts_group(fake_transport: FakeTransportFactory) -> None:
    """Transport failures propagate instead of becoming results."""
    error = TransportError("timed out", url="https://bar.example")
    group = WebRequestGroup(
        [
            {"url": "https://foo.example", "transport": fake_transport()},
            {"url": "https://bar.example", "transport": fake_transport(error=error)},
        ]
    )

    with pytest.raises(TransportError):
        group.run()


def test_group_check_on_class_is_rejected() -> None:
    """The group check needs an instance too."""
    with pytest.raises(InvocationMisuseError):
        WebRequestGroup.check()
