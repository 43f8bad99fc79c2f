"""Configuration loader for webcheck.

Values are read from several sources, later ones taking precedence:

1. Built-in defaults.
2. ``./webcheck.yml`` (or an override path).
3. Environment variables prefixed with ``WEBCHECK_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export WEBCHECK_DEFAULTS__TIMEOUT=3
    export WEBCHECK_LOG_LEVEL=debug

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally. A config file looks like::

    defaults:
      status_code: "200, >=300, <400"
      timeout: 5
    checks:
      - id: foo
        url: https://foo.example
      - id: bar
        url: https://bar.example
        content_regex: "ready"

Note that expressions starting with ``!`` must be quoted in YAML.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

import yaml

from .errors import ErrorKind, StatusCodeParseError, WebCheckError
from .group import SHARED_PARAMETERS
from .status_codes import parse_status_codes

ENV_PREFIX = "WEBCHECK_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}


class ConfigError(WebCheckError):
    """Raised when configuration parsing fails."""

    kind = ErrorKind.CONFIGURATION


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for webcheck."""

    config_file: Path
    log_level: str = "WARNING"
    defaults: Mapping[str, object] = field(default_factory=dict)
    checks: tuple[Mapping[str, object], ...] = ()

    def check_ids(self) -> list[str]:
        """Return the ids of configured checks, skipping anonymous ones."""
        return [str(check["id"]) for check in self.checks if check.get("id") is not None]

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "log_level": self.log_level,
            "defaults": dict(self.defaults),
            "checks": [dict(check) for check in self.checks],
        }


DEFAULTS: dict[str, object] = {
    "config_file": "webcheck.yml",
    "log_level": "WARNING",
    "defaults": {},
    "checks": [],
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
ALLOWED_DEFAULT_KEYS = SHARED_PARAMETERS - {"transport"}
CODE_ONLY_CHECK_KEYS = frozenset({"request", "transport"})
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)
    if config_file is not None and not config_path.exists():
        raise ConfigError(f"Config file {config_path} does not exist.")

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    log_level = raw.get("log_level")
    if log_level is not None and str(log_level).upper() not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ConfigError(f"Unsupported log_level '{log_level}'. Allowed: {allowed}.")

    defaults = _as_dict(raw.get("defaults"), "defaults")
    unknown = set(defaults.keys()) - ALLOWED_DEFAULT_KEYS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown defaults configuration keys: {joined}.")
    _validate_status_code(defaults, "defaults")

    checks_raw = raw.get("checks")
    if checks_raw is None:
        return
    seen_ids: set[str] = set()
    for index, entry in enumerate(_as_sequence(checks_raw, "checks")):
        label = f"checks[{index}]"
        check = _as_dict(entry, label)
        code_only = sorted(set(check) & CODE_ONLY_CHECK_KEYS)
        if code_only:
            joined = ", ".join(code_only)
            raise ConfigError(f"{label} cannot set {joined} from a config file.")
        url = check.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"{label}.url must be a non-empty string.")
        _validate_status_code(check, label)
        check_id = check.get("id")
        if check_id is not None:
            if str(check_id) in seen_ids:
                raise ConfigError(f"Duplicate check id '{check_id}'.")
            seen_ids.add(str(check_id))


def _validate_status_code(mapping: Mapping[str, object], label: str) -> None:
    if "status_code" not in mapping:
        return
    try:
        parse_status_codes(mapping["status_code"])  # type: ignore[arg-type]
    except StatusCodeParseError as exc:
        raise ConfigError(f"{label}.status_code: {exc}") from exc


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    checks = tuple(
        _as_dict(entry, f"checks[{index}]")
        for index, entry in enumerate(_as_sequence(raw.get("checks") or [], "checks"))
    )
    return AppConfig(
        config_file=config_file,
        log_level=str(raw.get("log_level", "WARNING")).upper(),
        defaults=_as_dict(raw.get("defaults"), "defaults"),
        checks=checks,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:
        # Values such as ``!500`` look like YAML tags; keep them as text.
        return raw
    return parsed


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "load_config",
]
