"""Tests for the ``webcheck`` command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner, Result

from tests.conftest import FakeTransport, FakeTransportFactory
from webcheck import __version__
from webcheck import cli as webcheck_cli
from webcheck.cli import app
from webcheck.errors import TransportError
from webcheck.exit_codes import ExitCode
from webcheck.transport import Method

runner = CliRunner()


def _use_transport(monkeypatch: pytest.MonkeyPatch, transport: FakeTransport) -> None:
    monkeypatch.setattr(webcheck_cli, "_transport_factory", lambda: transport)


def _invoke(args: list[str], env: dict[str, str] | None = None) -> Result:
    return runner.invoke(app, args, env=env)


def _write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "webcheck.yml"
    path.write_text(content, encoding="utf-8")
    return path


def test_version_flag() -> None:
    """``--version`` prints the package version."""
    result = _invoke(["--version"])

    assert result.exit_code == 0
    assert f"webcheck {__version__}" in result.stdout


def test_probe_ok_json(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """A passing probe exits 0 and reports the subresults."""
    transport = fake_transport(200, "all systems go")
    _use_transport(monkeypatch, transport)

    result = _invoke(
        ["probe", "https://foo.example", "--content-regex", "systems", "--json"]
    )

    assert result.exit_code == ExitCode.OK
    payload = json.loads(result.stdout)
    assert payload["status"] == "OK"
    assert [item["status"] for item in payload["results"]] == ["OK", "OK"]
    assert payload["info"].endswith("Response content matches /systems/")


def test_probe_critical_exit_code(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """A failing status check exits with the critical code."""
    _use_transport(monkeypatch, fake_transport(401))

    result = _invoke(["probe", "https://foo.example", "--json"])

    assert result.exit_code == ExitCode.CRITICAL
    payload = json.loads(result.stdout)
    assert payload["status"] == "CRITICAL"
    assert "401" in payload["info"]
    assert "expected 200" in payload["info"]


def test_probe_warning_exit_code(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """Slow responses exit with the warning code."""
    _use_transport(monkeypatch, fake_transport(200, elapsed=4.0))

    result = _invoke(
        ["probe", "https://foo.example", "--response-time-threshold", "1", "--json"]
    )

    assert result.exit_code == ExitCode.WARNING
    assert json.loads(result.stdout)["status"] == "WARNING"


def test_probe_forwards_request_options(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """Method, form data and flags reach the transport."""
    transport = fake_transport(201)
    _use_transport(monkeypatch, transport)

    result = _invoke(
        [
            "probe",
            "https://foo.example/form",
            "--method",
            "post",
            "--data",
            "title=tell me",
            "-d",
            "body=something",
            "--status-code",
            "200, 201",
            "--timeout",
            "2",
            "--no-follow-redirects",
            "--user-agent",
            "ops",
        ]
    )

    assert result.exit_code == ExitCode.OK
    request, options = transport.sent[0]
    assert request.method is Method.POST
    assert request.data == {"title": "tell me", "body": "something"}
    assert options.timeout == 2.0
    assert options.follow_redirects is False
    assert options.user_agent.startswith("ops ")
    assert "OK" in result.stdout


@pytest.mark.parametrize(
    "args",
    [
        ["probe", "https://foo.example", "--status-code", "==200"],
        ["probe", "https://foo.example", "--method", "DELETE"],
        ["probe", "https://foo.example", "--data", "novalue"],
    ],
)
def test_probe_invalid_arguments(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
    args: list[str],
) -> None:
    """Invalid configuration exits with the validation code without a request."""
    transport = fake_transport()
    _use_transport(monkeypatch, transport)

    result = _invoke(args)

    assert result.exit_code == ExitCode.VALIDATION
    assert transport.sent == []


def test_probe_transport_failure(
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """No response at all maps to the transport exit code."""
    error = TransportError("Request to https://foo.example failed: refused", url="https://foo.example")
    _use_transport(monkeypatch, fake_transport(error=error))

    result = _invoke(["probe", "https://foo.example"])

    assert result.exit_code == ExitCode.TRANSPORT


def test_run_uses_config_file(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """``run`` executes every configured check with shared defaults."""
    _use_transport(monkeypatch, fake_transport(302, "ready"))
    config = _write_config(
        tmp_path,
        "defaults:\n"
        "  status_code: 200, >=300, <400\n"
        "  tags: [web]\n"
        "checks:\n"
        "  - id: foo\n"
        "    url: https://foo.example\n"
        "  - id: bar\n"
        "    url: https://bar.example\n"
        "    content_regex: missing\n",
    )

    result = _invoke(["run", "--config-file", str(config), "--json"])

    assert result.exit_code == ExitCode.CRITICAL
    payload = json.loads(result.stdout)
    assert payload["status"] == "CRITICAL"
    assert payload["totals"] == {"OK": 1, "WARNING": 0, "CRITICAL": 1}
    assert [item["id"] for item in payload["results"]] == ["foo", "bar"]
    assert payload["results"][0]["tags"] == ["web"]


def test_run_only_selects_checks(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """``--only`` limits the run to the named checks."""
    transport = fake_transport(200)
    _use_transport(monkeypatch, transport)
    config = _write_config(
        tmp_path,
        "checks:\n"
        "  - id: foo\n"
        "    url: https://foo.example\n"
        "  - id: bar\n"
        "    url: https://bar.example\n",
    )

    result = _invoke(["run", "--config-file", str(config), "--only", "bar", "--json"])

    assert result.exit_code == ExitCode.OK
    assert [request.url for request, _ in transport.sent] == ["https://bar.example"]

    unknown = _invoke(["run", "--config-file", str(config), "--only", "nope"])
    assert unknown.exit_code == ExitCode.VALIDATION


def test_run_reads_config_path_from_env(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """``WEBCHECK_CONFIG_FILE`` locates the config when no flag is given."""
    _use_transport(monkeypatch, fake_transport(200))
    config = _write_config(tmp_path, "checks:\n  - id: foo\n    url: https://foo.example\n")

    result = _invoke(["run"], env={"WEBCHECK_CONFIG_FILE": str(config)})

    assert result.exit_code == ExitCode.OK
    assert "foo" in result.stdout


def test_run_rejects_invalid_config(tmp_path: Path) -> None:
    """Configuration errors exit with the validation code."""
    config = _write_config(tmp_path, "checks:\n  - id: foo\n")

    result = _invoke(["run", "--config-file", str(config)])

    assert result.exit_code == ExitCode.VALIDATION


def test_run_without_checks(tmp_path: Path) -> None:
    """An empty config is a validation error."""
    config = _write_config(tmp_path, "defaults:\n  timeout: 3\n")

    result = _invoke(["run", "--config-file", str(config)])

    assert result.exit_code == ExitCode.VALIDATION


def test_run_renders_numeric_ids(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """Integer ids from YAML render in both output modes."""
    _use_transport(monkeypatch, fake_transport(200))
    config = _write_config(tmp_path, "checks:\n  - id: 1\n    url: https://foo.example\n")

    result = _invoke(["run", "--config-file", str(config)])

    assert result.exit_code == ExitCode.OK
    assert "1: Requested https://foo.example" in result.stdout

    as_json = _invoke(["run", "--config-file", str(config), "--json"])
    assert json.loads(as_json.stdout)["results"][0]["id"] == "1"


def test_run_rejects_transport_in_config(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_transport: FakeTransportFactory,
) -> None:
    """A transport cannot be named from YAML; it fails validation up front."""
    transport = fake_transport(200)
    _use_transport(monkeypatch, transport)
    config = _write_config(
        tmp_path,
        "checks:\n  - url: https://foo.example\n    transport: requests\n",
    )

    result = _invoke(["run", "--config-file", str(config)])

    assert result.exit_code == ExitCode.VALIDATION
    assert transport.sent == []
