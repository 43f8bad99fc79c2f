"""Data models and helpers for web request probe results."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

INFO_SEPARATOR = "; "


class ProbeStatus(str, Enum):
    """High-level outcome for a probe or one of its subresults."""

    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


STATUS_ORDER: Mapping[ProbeStatus, int] = {
    ProbeStatus.OK: 0,
    ProbeStatus.WARNING: 1,
    ProbeStatus.CRITICAL: 2,
}


@dataclass(slots=True, frozen=True)
class Subresult:
    """One component of a probe's judgement."""

    status: ProbeStatus
    info: str


@dataclass(slots=True, frozen=True)
class ProbeResult:
    """Outcome of running a web request diagnostic."""

    status: ProbeStatus
    info: str
    results: Sequence[Subresult] = field(default_factory=tuple)
    id: str | None = None
    label: str | None = None
    tags: Sequence[str] = field(default_factory=tuple)
    duration_ms: int | None = None


@dataclass(slots=True, frozen=True)
class ResultSummary:
    """Aggregated summary derived from several probe results."""

    status: ProbeStatus
    totals: Mapping[ProbeStatus, int]


def worst_status(statuses: Iterable[ProbeStatus]) -> ProbeStatus:
    """Return the most severe status, ``OK`` for an empty iterable."""
    worst = ProbeStatus.OK
    for status in statuses:
        if STATUS_ORDER[status] > STATUS_ORDER[worst]:
            worst = status
    return worst


def combine_subresults(subresults: Sequence[Subresult]) -> ProbeResult:
    """Fold ordered subresults into a single :class:`ProbeResult`."""
    return ProbeResult(
        status=worst_status(result.status for result in subresults),
        info=INFO_SEPARATOR.join(result.info for result in subresults),
        results=tuple(subresults),
    )


def aggregate_results(results: Iterable[ProbeResult]) -> ResultSummary:
    """Compute the overall status and per-status totals."""
    totals: dict[ProbeStatus, int] = {
        ProbeStatus.OK: 0,
        ProbeStatus.WARNING: 0,
        ProbeStatus.CRITICAL: 0,
    }
    worst = ProbeStatus.OK
    for result in results:
        totals[result.status] += 1
        if STATUS_ORDER[result.status] > STATUS_ORDER[worst]:
            worst = result.status
    return ResultSummary(status=worst, totals=totals)


__all__ = [
    "INFO_SEPARATOR",
    "STATUS_ORDER",
    "ProbeResult",
    "ProbeStatus",
    "ResultSummary",
    "Subresult",
    "aggregate_results",
    "combine_subresults",
    "worst_status",
]
