"""
fieldguard — validation settings.

File: src/fieldguard/config.py

Purpose
- Load validation settings from defaults, a TOML file, ``FIELDGUARD_`` environment variables
  and explicit overrides.

What should be included in this file
- Precedence logic: overrides > env (FIELDGUARD_) > file > defaults.
- TOML loading via ``tomllib``; settings live in the ``[validation]`` table.
- Deterministic environment variable mapping and coercion.

Functional requirements
- Unknown keys and uncoercible values raise ConfigLoadError naming their source.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, Final, Literal

from fieldguard.errors import ConfigLoadError

DEFAULT_CONFIG_FILE: Final[str] = "fieldguard.toml"
CONFIG_TABLE: Final[str] = "validation"
ENV_PREFIX: Final[str] = "FIELDGUARD_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})


class AnyPolicy(StrEnum):
    """How to treat packed payloads whose type is not registered."""

    LENIENT = "lenient"
    STRICT = "strict"


@dataclass(frozen=True, slots=True)
class ValidationSettings:
    unknown_any_policy: AnyPolicy = AnyPolicy.LENIENT
    max_depth: int = 100
    log_results: bool = False

    def __post_init__(self) -> None:
        try:
            policy = AnyPolicy(self.unknown_any_policy)
        except ValueError as exc:
            raise ConfigLoadError(
                "unknown_any_policy must be one of: "
                + ", ".join(item.value for item in AnyPolicy)
            ) from exc
        object.__setattr__(self, "unknown_any_policy", policy)
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise ConfigLoadError("max_depth must be an integer")
        if self.max_depth < 1:
            raise ConfigLoadError("max_depth must be >= 1")
        if not isinstance(self.log_results, bool):
            raise ConfigLoadError("log_results must be a boolean")

    @property
    def strict_any(self) -> bool:
        return self.unknown_any_policy is AnyPolicy.STRICT

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        payload["unknown_any_policy"] = self.unknown_any_policy.value
        return payload


DEFAULT_SETTINGS: Final[ValidationSettings] = ValidationSettings()

_ValueType = Literal["str", "int", "bool"]

_KEYS: Final[dict[str, _ValueType]] = {
    "unknown_any_policy": "str",
    "max_depth": "int",
    "log_results": "bool",
}


def load_settings(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ValidationSettings:
    """Load settings with deterministic precedence: overrides > env > file > defaults."""

    resolved_path = _resolve_config_path(config_path)
    env_map = dict(os.environ if environ is None else environ)

    merged: dict[str, Any] = DEFAULT_SETTINGS.to_dict()
    file_table = _load_validation_table(resolved_path, required=config_path is not None)
    merged.update(_checked(file_table, source=str(resolved_path)))
    merged.update(_collect_env_overrides(env_map))
    merged.update(_checked(dict(overrides or {}), source="overrides"))
    return ValidationSettings(**merged)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_validation_table(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    table = parsed.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigLoadError(f"[{CONFIG_TABLE}] must be a table: {path}")
    return table


def _checked(payload: Mapping[str, object], *, source: str) -> dict[str, object]:
    unknown = sorted(set(payload) - set(_KEYS))
    if unknown:
        raise ConfigLoadError(f"{source}: unknown settings: {', '.join(unknown)}")
    checked: dict[str, object] = {}
    for key in sorted(payload):
        value = payload[key]
        if _KEYS[key] == "bool" and not isinstance(value, bool):
            raise ConfigLoadError(f"{source}: {key} must be a boolean")
        if _KEYS[key] == "int" and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConfigLoadError(f"{source}: {key} must be an integer")
        if _KEYS[key] == "str" and not isinstance(value, str):
            raise ConfigLoadError(f"{source}: {key} must be a string")
        checked[key] = value
    return checked


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key in sorted(_KEYS):
        env_name = _env_name_for_key(key)
        raw = environ.get(env_name)
        if raw is None:
            continue
        overrides[key] = _coerce_env(raw, _KEYS[key], env_name, key)
    return overrides


def _coerce_env(raw: str, value_type: _ValueType, env_name: str, key: str) -> object:
    value = raw.strip()
    if value_type == "str":
        return value.lower()
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {key} must be an integer") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {key} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _env_name_for_key(key: str) -> str:
    return f"{ENV_PREFIX}{key.upper()}"


__all__ = [
    "CONFIG_TABLE",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_SETTINGS",
    "ENV_PREFIX",
    "AnyPolicy",
    "ValidationSettings",
    "load_settings",
]
