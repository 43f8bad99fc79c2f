"""Utility helpers for serialising probe results."""
from __future__ import annotations

from collections.abc import Mapping, Sequence

from .group import GroupResult
from .models import ProbeResult, ProbeStatus


def _sanitize_payload(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(key): _sanitize_payload(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_sanitize_payload(item) for item in value]
    return str(value)


def serialize_result(result: ProbeResult) -> dict[str, object]:
    """Convert a probe result into a JSON-serialisable mapping."""
    payload: dict[str, object] = {
        "status": result.status.value,
        "info": result.info,
        "results": [
            {"status": subresult.status.value, "info": subresult.info}
            for subresult in result.results
        ],
    }
    if result.id is not None:
        payload["id"] = result.id
    if result.label is not None:
        payload["label"] = result.label
    if result.tags:
        payload["tags"] = _sanitize_payload(result.tags)
    if result.duration_ms is not None:
        payload["duration_ms"] = result.duration_ms
    return payload


def serialize_group(group: GroupResult) -> dict[str, object]:
    """Convert a group result into a JSON-serialisable mapping."""
    totals = {
        status.value: int(group.summary.totals.get(status, 0))
        for status in ProbeStatus
    }
    payload: dict[str, object] = {
        "status": group.summary.status.value,
        "totals": totals,
        "results": [serialize_result(result) for result in group.results],
    }
    if group.label is not None:
        payload["label"] = group.label
    return payload


__all__ = ["serialize_group", "serialize_result"]
