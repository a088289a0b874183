"""
fieldguard — violation tree.

File: src/fieldguard/violations.py

Purpose
- The result of a failed validation: ordered violations, each with a lazily formatted message,
  the path of the offending field, the declaring type, the offending value and nested children.

Functional requirements
- A ValidationError is never empty; "valid" is represented by ``None``.
- Trees serialize to plain dicts and canonical JSON and read back equal, with field values in
  their JSON form.
"""

from __future__ import annotations

import base64
import json
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TypeAlias

from fieldguard.numeric import NumericValue
from fieldguard.templates import TemplateString

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


@dataclass(frozen=True, slots=True)
class ConstraintViolation:
    message: TemplateString
    field_path: tuple[str, ...]
    type_name: str
    field_value: object = None
    children: tuple[ConstraintViolation, ...] = ()

    def __post_init__(self) -> None:
        message = self.message
        if isinstance(message, str):
            message = TemplateString(message)
        if not isinstance(message, TemplateString):
            raise TypeError("ConstraintViolation.message: expected TemplateString")
        object.__setattr__(self, "message", message)
        path = tuple(self.field_path)
        if any(not isinstance(segment, str) or not segment for segment in path):
            raise ValueError("ConstraintViolation.field_path: segments must be non-empty strings")
        object.__setattr__(self, "field_path", path)
        object.__setattr__(
            self, "type_name", _as_non_empty_str(self.type_name, "ConstraintViolation.type_name")
        )
        children = tuple(self.children)
        for index, child in enumerate(children):
            if not isinstance(child, ConstraintViolation):
                raise TypeError(
                    f"ConstraintViolation.children[{index}]: expected ConstraintViolation"
                )
        object.__setattr__(self, "children", children)

    @property
    def dotted_path(self) -> str:
        return ".".join(self.field_path)

    def walk(self, depth: int = 0) -> Iterator[tuple[int, ConstraintViolation]]:
        """Yield ``(depth, violation)`` for this violation and its descendants, depth first."""

        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def format(self) -> str:
        return self.message.format()

    def format_unsafe(self) -> str:
        return self.message.format_unsafe()

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "message": {"template": self.message.template, "values": dict(self.message.values)},
            "field_path": list(self.field_path),
            "type_name": self.type_name,
            "field_value": to_json_value(self.field_value),
            "children": [child.to_dict() for child in self.children],
        }

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ConstraintViolation:
        data = _as_mapping(payload, "ConstraintViolation")
        message = _as_mapping(data["message"], "ConstraintViolation.message")
        values = _as_mapping(message.get("values", {}), "ConstraintViolation.message.values")
        field_path = data.get("field_path", [])
        if not isinstance(field_path, list):
            raise ValueError("ConstraintViolation.field_path: expected a list")
        children = data.get("children", [])
        if not isinstance(children, list):
            raise ValueError("ConstraintViolation.children: expected a list")
        return cls(
            message=TemplateString(
                _as_str(message["template"], "ConstraintViolation.message.template"),
                {
                    _as_str(key, "ConstraintViolation.message.values"): _as_str(
                        value, f"ConstraintViolation.message.values.{key}"
                    )
                    for key, value in values.items()
                },
            ),
            field_path=tuple(
                _as_non_empty_str(item, "ConstraintViolation.field_path") for item in field_path
            ),
            type_name=_as_non_empty_str(data["type_name"], "ConstraintViolation.type_name"),
            field_value=_from_json_value(data.get("field_value")),
            children=tuple(cls.from_dict(_as_mapping(item, "children")) for item in children),
        )

    @classmethod
    def from_json(cls, payload: str) -> ConstraintViolation:
        return cls.from_dict(_load_json_object(payload, "ConstraintViolation"))


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Non-empty, ordered top-level violations of one record."""

    violations: tuple[ConstraintViolation, ...]

    def __post_init__(self) -> None:
        violations = tuple(self.violations)
        if not violations:
            raise ValueError("ValidationError.violations: must not be empty")
        for index, violation in enumerate(violations):
            if not isinstance(violation, ConstraintViolation):
                raise TypeError(
                    f"ValidationError.violations[{index}]: expected ConstraintViolation"
                )
        object.__setattr__(self, "violations", violations)

    @classmethod
    def of(cls, violations: Sequence[ConstraintViolation]) -> ValidationError | None:
        """Return ``None`` for no violations, else a ValidationError holding them."""

        if not violations:
            return None
        return cls(tuple(violations))

    def walk(self) -> Iterator[tuple[int, ConstraintViolation]]:
        for violation in self.violations:
            yield from violation.walk()

    def messages(self) -> tuple[str, ...]:
        return tuple(violation.format_unsafe() for _, violation in self.walk())

    def __len__(self) -> int:
        return len(self.violations)

    def __iter__(self) -> Iterator[ConstraintViolation]:
        return iter(self.violations)

    def to_dict(self) -> dict[str, JSONValue]:
        return {"violations": [violation.to_dict() for violation in self.violations]}

    def to_json(self) -> str:
        return canonical_json(self.to_dict())

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> ValidationError:
        data = _as_mapping(payload, "ValidationError")
        items = data.get("violations")
        if not isinstance(items, list):
            raise ValueError("ValidationError.violations: expected a list")
        return cls(
            tuple(
                ConstraintViolation.from_dict(_as_mapping(item, "ValidationError.violations"))
                for item in items
            )
        )

    @classmethod
    def from_json(cls, payload: str) -> ValidationError:
        return cls.from_dict(_load_json_object(payload, "ValidationError"))


def canonical_json(value: JSONValue) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def to_json_value(value: object) -> JSONValue:
    """Return the JSON form of a field value.

    Bytes become ``{"$bytes": <base64>}``, non-finite floats ``{"$float": "nan"}`` and the like;
    records and other objects fall back to their ``repr``.
    """

    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return {"$float": repr(value)}
    if isinstance(value, NumericValue):
        return to_json_value(value.value)
    if isinstance(value, (bytes, bytearray)):
        return {"$bytes": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): to_json_value(item) for key, item in value.items()}
    return repr(value)


def _from_json_value(value: object) -> object:
    if isinstance(value, list):
        return tuple(_from_json_value(item) for item in value)
    if isinstance(value, dict):
        if set(value) == {"$bytes"}:
            return base64.b64decode(_as_str(value["$bytes"], "field_value.$bytes"))
        if set(value) == {"$float"}:
            return float(_as_str(value["$float"], "field_value.$float"))
        return {key: _from_json_value(item) for key, item in value.items()}
    return value


def _load_json_object(payload: str, path: str) -> Mapping[str, object]:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON: {exc}") from exc
    return _as_mapping(parsed, path)


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{path}: expected an object")
    return value


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{path}: expected a string")
    return value


def _as_non_empty_str(value: object, path: str) -> str:
    text = _as_str(value, path)
    if not text.strip():
        raise ValueError(f"{path}: must not be empty")
    return text


__all__ = [
    "ConstraintViolation",
    "JSONValue",
    "ValidationError",
    "canonical_json",
    "to_json_value",
]
