"""Typer-powered command line interface for ``webcheck``."""
from __future__ import annotations

import json
import logging
import textwrap
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .diagnostic import WebRequestDiagnostic
from .errors import DiagnosticConfigError, TransportError
from .exit_codes import ExitCode
from .group import GroupResult, WebRequestGroup
from .models import ProbeResult, ProbeStatus
from .transport import RequestsTransport, Transport
from .utils import serialize_group, serialize_result

LOGGER = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

# Replaced in tests to avoid real network I/O.
_transport_factory: Callable[[], Transport] = RequestsTransport

_STATUS_STYLE: Mapping[ProbeStatus, str] = {
    ProbeStatus.OK: "[green]OK[/green]",
    ProbeStatus.WARNING: "[yellow]WARNING[/yellow]",
    ProbeStatus.CRITICAL: "[red]CRITICAL[/red]",
}

_STATUS_EXIT: Mapping[ProbeStatus, ExitCode] = {
    ProbeStatus.OK: ExitCode.OK,
    ProbeStatus.WARNING: ExitCode.WARNING,
    ProbeStatus.CRITICAL: ExitCode.CRITICAL,
}

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Path to the YAML file listing the checks to run.",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit results as JSON instead of human readable lines.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        Probe HTTP/HTTPS endpoints and report a pass/fail diagnosis.

        Use ``probe`` for a single URL or ``run`` to execute the checks listed
        in a YAML config file.
        """
    ).strip(),
)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _fail(message: str, code: ExitCode) -> NoReturn:
    err_console.print(f"[red]{escape(message)}[/red]")
    raise typer.Exit(code=int(code))


def _print_json(payload: Mapping[str, object]) -> None:
    console.print(json.dumps(payload, indent=2), soft_wrap=True, markup=False, highlight=False)


def _render_result(result: ProbeResult) -> None:
    name = result.id or result.label or "web_request"
    console.print(f"{_STATUS_STYLE[result.status]} {escape(str(name))}: {escape(result.info)}")
    if result.duration_ms is not None:
        console.print(f"  duration: {result.duration_ms} ms")


def _render_group(group: GroupResult) -> None:
    totals = group.summary.totals
    console.print(
        f"Summary: {_STATUS_STYLE[group.summary.status]} "
        f"ok={totals.get(ProbeStatus.OK, 0)} "
        f"warn={totals.get(ProbeStatus.WARNING, 0)} "
        f"critical={totals.get(ProbeStatus.CRITICAL, 0)}"
    )
    console.print()
    for result in group.results:
        _render_result(result)


def _parse_form_data(entries: Sequence[str] | None) -> dict[str, str] | None:
    if not entries:
        return None
    form: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key.strip():
            _fail(f"Invalid --data entry '{entry}'; expected KEY=VALUE.", ExitCode.VALIDATION)
        form[key.strip()] = value
    return form


def _select_checks(config: AppConfig, only: Sequence[str] | None) -> list[Mapping[str, object]]:
    if not only:
        return list(config.checks)
    wanted = set(only)
    missing = wanted - set(config.check_ids())
    if missing:
        _fail(f"Unknown check ids: {', '.join(sorted(missing))}", ExitCode.VALIDATION)
    return [check for check in config.checks if str(check.get("id")) in wanted]


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the webcheck version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging on stderr.",
    ),
) -> None:
    """Entry point callback invoked for every CLI execution."""
    ctx.obj = {"verbose": verbose}
    _configure_logging("DEBUG" if verbose else "WARNING")
    if version:
        console.print(f"webcheck {__version__}")
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def probe(
    url: str = typer.Argument(..., help="URL to request."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method (GET, POST, HEAD)."),
    data: list[str] | None = typer.Option(
        None,
        "--data",
        "-d",
        help="Form field sent with the request as KEY=VALUE (repeatable).",
    ),
    status_code: str | None = typer.Option(
        None,
        "--status-code",
        "-s",
        help="Acceptable status codes, e.g. '200' or '200, >=300, <400'.",
    ),
    content_regex: str | None = typer.Option(
        None,
        "--content-regex",
        "-c",
        help="Regex the response body must match.",
    ),
    timeout: float | None = typer.Option(None, "--timeout", help="Request timeout in seconds."),
    response_time_threshold: float | None = typer.Option(
        None,
        "--response-time-threshold",
        help="Warn when the response takes longer than this many seconds.",
    ),
    no_follow_redirects: bool = typer.Option(
        False,
        "--no-follow-redirects",
        help="Do not follow HTTP redirects.",
    ),
    user_agent: str | None = typer.Option(None, "--user-agent", help="Custom user agent prefix."),
    json_output: bool = JSON_OPTION,
) -> None:
    """Request a single URL and check the response."""
    try:
        diagnostic = WebRequestDiagnostic(
            url=url,
            method=method,
            data=_parse_form_data(data),
            status_code=status_code,
            content_regex=content_regex,
            timeout=timeout,
            response_time_threshold=response_time_threshold,
            no_follow_redirects=no_follow_redirects,
            user_agent=user_agent,
            transport=_transport_factory(),
        )
    except DiagnosticConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)

    try:
        result = diagnostic.check()
    except TransportError as exc:
        _fail(str(exc), ExitCode.TRANSPORT)

    if json_output:
        _print_json(serialize_result(result))
    else:
        _render_result(result)
    raise typer.Exit(code=int(_STATUS_EXIT[result.status]))


@app.command()
def run(
    ctx: typer.Context,
    config_file: Path | None = CONFIG_FILE_OPTION,
    only: list[str] | None = typer.Option(
        None,
        "--only",
        help="Run only the check with this id (repeatable).",
    ),
    json_output: bool = JSON_OPTION,
) -> None:
    """Run every check listed in the config file."""
    try:
        config = load_config(config_file)
    except ConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)

    verbose = bool((ctx.obj or {}).get("verbose"))
    if not verbose:
        _configure_logging(config.log_level)

    checks = _select_checks(config, only)
    if not checks:
        _fail(f"No checks configured in {config.config_file}.", ExitCode.VALIDATION)

    try:
        group = WebRequestGroup(
            checks,
            **{**config.defaults, "transport": _transport_factory()},
        )
    except DiagnosticConfigError as exc:
        _fail(str(exc), ExitCode.VALIDATION)

    LOGGER.debug("Running %d checks from %s", len(group), config.config_file)
    try:
        outcome = group.check()
    except TransportError as exc:
        _fail(str(exc), ExitCode.TRANSPORT)

    if json_output:
        _print_json(serialize_group(outcome))
    else:
        _render_group(outcome)
    raise typer.Exit(code=int(_STATUS_EXIT[outcome.summary.status]))


def main() -> None:  # pragma: no cover - console script entry point
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
