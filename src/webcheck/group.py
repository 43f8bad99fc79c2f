"""Group several web request diagnostics into a single health check."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from .diagnostic import ALLOWED_PARAMETERS, WebRequestDiagnostic, build_diagnostic, instance_only
from .errors import DiagnosticConfigError
from .models import ProbeResult, ResultSummary, aggregate_results

LOGGER = logging.getLogger(__name__)

DEFAULT_GROUP_LABEL = "web_requests"

# Keys that only make sense per check and therefore cannot be shared.
_PER_CHECK_KEYS = frozenset({"url", "request", "method", "data", "headers"})
SHARED_PARAMETERS = ALLOWED_PARAMETERS - _PER_CHECK_KEYS


@dataclass(slots=True, frozen=True)
class GroupResult:
    """Ordered results of every diagnostic in a group."""

    results: Sequence[ProbeResult]
    summary: ResultSummary
    label: str | None = None


def _flatten(checks: Iterable[object]) -> list[object]:
    flat: list[object] = []
    for entry in checks:
        if isinstance(entry, (list, tuple)):
            flat.extend(_flatten(entry))
        else:
            flat.append(entry)
    return flat


class WebRequestGroup:
    """Fan a set of diagnostics out and collect their results in order.

    Mapping entries in *checks* are inflated into diagnostics with the shared
    keyword arguments as defaults; ready :class:`WebRequestDiagnostic`
    instances are used as they are.
    """

    def __init__(
        self,
        checks: Sequence[WebRequestDiagnostic | Mapping[str, object]] | None,
        *,
        label: str | None = None,
        **shared: object,
    ) -> None:
        """Inflate *checks* using *shared* defaults."""
        if not checks:
            raise DiagnosticConfigError("No checks specified!")

        unknown = sorted(set(shared) - SHARED_PARAMETERS)
        if unknown:
            LOGGER.warning("Invalid parameter: %s", ", ".join(unknown))
        defaults = {key: value for key, value in shared.items() if key in SHARED_PARAMETERS}

        if label is not None:
            defaults.setdefault("label", label)

        self.label = label if label is not None else DEFAULT_GROUP_LABEL
        self._defaults: Mapping[str, object] = defaults
        self._diagnostics: list[WebRequestDiagnostic] = [
            build_diagnostic(entry, defaults)  # type: ignore[arg-type]
            for entry in _flatten(checks)
        ]

    @property
    def diagnostics(self) -> tuple[WebRequestDiagnostic, ...]:
        """Return the diagnostics in execution order."""
        return tuple(self._diagnostics)

    @property
    def defaults(self) -> Mapping[str, object]:
        """Return the shared defaults applied to mapping entries."""
        return dict(self._defaults)

    def register(self, diagnostics: WebRequestDiagnostic | Iterable[WebRequestDiagnostic]) -> None:
        """Append ready diagnostics after verifying their type."""
        entries = [diagnostics] if isinstance(diagnostics, WebRequestDiagnostic) else _flatten(diagnostics)
        for entry in entries:
            if not isinstance(entry, WebRequestDiagnostic):
                raise DiagnosticConfigError(
                    "Each registered check must be a WebRequestDiagnostic."
                )
        self._diagnostics.extend(entries)  # type: ignore[arg-type]

    @instance_only
    def check(self) -> GroupResult:
        """Run every diagnostic once, in order."""
        results = [diagnostic.check() for diagnostic in self._diagnostics]
        return GroupResult(
            results=tuple(results),
            summary=aggregate_results(results),
            label=self.label,
        )

    @instance_only
    def run(self) -> GroupResult:
        """Alias of :meth:`check`."""
        return self.check()

    def __len__(self) -> int:
        return len(self._diagnostics)


__all__ = ["DEFAULT_GROUP_LABEL", "GroupResult", "SHARED_PARAMETERS", "WebRequestGroup"]
