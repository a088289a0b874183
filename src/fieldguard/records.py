"""
fieldguard — record instances.

File: src/fieldguard/records.py

Purpose
- Immutable instances of a RecordType, and packed ``Any`` payloads that name their type by URL.

Functional requirements
- Unknown fields, wrong value types, out-of-range integers and two set cases of one oneof are
  rejected at construction with a ``path: message`` error.
- Unset fields read as the zero value of their kind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Final

from fieldguard.errors import PayloadDecodeError
from fieldguard.numeric import NumericKind, NumericValue, integer_limits
from fieldguard.schema import (
    TYPE_URL_PREFIX,
    FieldDescriptor,
    FieldKind,
    RecordType,
    type_url_for,
)

_EMPTY_MAP: Final[Mapping[object, object]] = MappingProxyType({})

_SCALAR_ZERO: Final[dict[FieldKind, object]] = {
    FieldKind.INT32: 0,
    FieldKind.INT64: 0,
    FieldKind.UINT32: 0,
    FieldKind.UINT64: 0,
    FieldKind.FLOAT: 0.0,
    FieldKind.DOUBLE: 0.0,
    FieldKind.BOOL: False,
    FieldKind.STRING: "",
    FieldKind.BYTES: b"",
    FieldKind.ENUM: 0,
    FieldKind.MESSAGE: None,
    FieldKind.ANY: None,
}


def zero_value(descriptor: FieldDescriptor) -> object:
    """Return the value an unset field reads as."""

    if descriptor.is_repeated:
        return ()
    if descriptor.is_map:
        return _EMPTY_MAP
    return _SCALAR_ZERO[descriptor.kind]


def is_zero_element(kind: FieldKind, element: object) -> bool:
    """Return whether one element of a field of ``kind`` equals the kind's zero value."""

    if kind in (FieldKind.MESSAGE, FieldKind.ANY):
        return element is None
    if kind is FieldKind.BOOL:
        return element is False
    zero = _SCALAR_ZERO[kind]
    return element == zero and type(element) is type(zero)


class AnyPayload:
    """A record packed together with the URL of its type."""

    __slots__ = ("_type_url", "_values")

    def __init__(self, type_url: str, values: Mapping[str, object] | None = None) -> None:
        if not isinstance(type_url, str) or not type_url.strip():
            raise ValueError("AnyPayload.type_url: must be a non-empty string")
        if values is not None and not isinstance(values, Mapping):
            raise TypeError("AnyPayload.values: expected a mapping of field names to values")
        self._type_url = type_url
        self._values: Mapping[str, object] = MappingProxyType(dict(values or {}))

    @classmethod
    def pack(cls, record: Record, *, prefix: str = TYPE_URL_PREFIX) -> AnyPayload:
        return cls(type_url_for(record.type_name, prefix=prefix), record.set_values())

    @property
    def type_url(self) -> str:
        return self._type_url

    @property
    def values(self) -> Mapping[str, object]:
        return self._values

    def unpack_as(self, record_type: RecordType) -> Record:
        try:
            return Record(record_type, self._values)
        except (TypeError, ValueError) as exc:
            raise PayloadDecodeError(
                f"cannot unpack `{self._type_url}` as `{record_type.name}`: {exc}"
            ) from exc

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AnyPayload):
            return NotImplemented
        return self._type_url == other._type_url and dict(self._values) == dict(other._values)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"AnyPayload(type_url={self._type_url!r}, values={dict(self._values)!r})"


class Record:
    """One immutable instance of a :class:`RecordType`."""

    __slots__ = ("_record_type", "_values")

    def __init__(
        self,
        record_type: RecordType,
        values: Mapping[str, object] | None = None,
        **fields: object,
    ) -> None:
        if not isinstance(record_type, RecordType):
            raise TypeError("Record.record_type: expected RecordType")
        merged: dict[str, object] = dict(values or {})
        merged.update(fields)

        stored: dict[str, object] = {}
        active_cases: dict[str, str] = {}
        for name, raw in merged.items():
            descriptor = record_type.find_field(name)
            if descriptor is None:
                raise ValueError(
                    f"{record_type.name}.{name}: type `{record_type.name}` has no such field"
                )
            if raw is None:
                continue
            path = descriptor.qualified_name
            stored[name] = _coerce_field(descriptor, raw, path)
            if descriptor.oneof is not None:
                previous = active_cases.get(descriptor.oneof)
                if previous is not None:
                    raise ValueError(
                        f"{path}: oneof `{descriptor.oneof}` already has `{previous}` set"
                    )
                active_cases[descriptor.oneof] = name

        self._record_type = record_type
        self._values: Mapping[str, object] = MappingProxyType(stored)

    @property
    def record_type(self) -> RecordType:
        return self._record_type

    @property
    def type_name(self) -> str:
        return self._record_type.name

    def get(self, name: str) -> object:
        descriptor = self._record_type.require_field(name)
        if name in self._values:
            return self._values[name]
        return zero_value(descriptor)

    def has(self, name: str) -> bool:
        """Return whether ``name`` was set explicitly, even to a zero value."""

        self._record_type.require_field(name)
        return name in self._values

    def is_default(self, name: str) -> bool:
        descriptor = self._record_type.require_field(name)
        value = self.get(name)
        if descriptor.is_repeated:
            return len(value) == 0  # type: ignore[arg-type]
        if descriptor.is_map:
            return len(value) == 0  # type: ignore[arg-type]
        return is_zero_element(descriptor.kind, value)

    def active_case(self, oneof_name: str) -> str | None:
        for case in self._record_type.oneof_cases(oneof_name):
            if case in self._values:
                return case
        return None

    def set_values(self) -> dict[str, object]:
        return dict(self._values)

    def replace(self, **changes: object) -> Record:
        merged = self.set_values()
        merged.update(changes)
        return Record(self._record_type, merged)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.type_name == other.type_name and dict(self._values) == dict(other._values)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        rendered = ", ".join(f"{key}={value!r}" for key, value in self._values.items())
        return f"{self.type_name}({rendered})"


def _coerce_field(descriptor: FieldDescriptor, raw: object, path: str) -> object:
    if descriptor.is_repeated:
        if isinstance(raw, (str, bytes, bytearray, Mapping)) or not isinstance(raw, Sequence):
            raise TypeError(f"{path}: repeated fields take a sequence, got {type(raw).__name__}")
        return tuple(
            _coerce_element(descriptor, item, f"{path}[{index}]")
            for index, item in enumerate(raw)
        )
    if descriptor.is_map:
        if not isinstance(raw, Mapping):
            raise TypeError(f"{path}: map fields take a mapping, got {type(raw).__name__}")
        assert descriptor.key_kind is not None
        coerced: dict[object, object] = {}
        for key, item in raw.items():
            checked_key = _coerce_scalar(descriptor.key_kind, key, f"{path}.<key>")
            coerced[checked_key] = _coerce_element(descriptor, item, f"{path}[{key!r}]")
        return MappingProxyType(coerced)
    return _coerce_element(descriptor, raw, path)


def _coerce_element(descriptor: FieldDescriptor, raw: object, path: str) -> object:
    if descriptor.kind is FieldKind.MESSAGE:
        if not isinstance(raw, Record):
            raise TypeError(f"{path}: expected a `{descriptor.message_type}` record")
        if raw.type_name != descriptor.message_type:
            raise TypeError(
                f"{path}: expected a `{descriptor.message_type}` record, got `{raw.type_name}`"
            )
        return raw
    if descriptor.kind is FieldKind.ANY:
        if not isinstance(raw, AnyPayload):
            raise TypeError(f"{path}: expected an AnyPayload, got {type(raw).__name__}")
        return raw
    return _coerce_scalar(descriptor.kind, raw, path)


def _coerce_scalar(kind: FieldKind, raw: object, path: str) -> object:
    if kind is FieldKind.BOOL:
        if not isinstance(raw, bool):
            raise TypeError(f"{path}: expected bool, got {type(raw).__name__}")
        return raw
    if kind is FieldKind.STRING:
        if not isinstance(raw, str):
            raise TypeError(f"{path}: expected str, got {type(raw).__name__}")
        return raw
    if kind is FieldKind.BYTES:
        if not isinstance(raw, (bytes, bytearray)):
            raise TypeError(f"{path}: expected bytes, got {type(raw).__name__}")
        return bytes(raw)
    if kind is FieldKind.ENUM:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise TypeError(f"{path}: expected an enum number, got {type(raw).__name__}")
        return int(raw)

    numeric_kind = kind.numeric_kind
    if numeric_kind is None:
        raise TypeError(f"{path}: `{kind}` values cannot be used here")
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise TypeError(f"{path}: expected a number, got {type(raw).__name__}")
    if numeric_kind.is_floating:
        return _coerce_floating(numeric_kind, raw, path)
    if not isinstance(raw, int):
        raise TypeError(f"{path}: `{kind}` requires an integer, got {raw!r}")
    low, high = integer_limits(numeric_kind)
    if not low <= raw <= high:
        raise ValueError(f"{path}: {raw} is out of range for `{kind}`")
    return raw


def _coerce_floating(kind: NumericKind, raw: int | float, path: str) -> float:
    try:
        return float(NumericValue(kind, float(raw)).value)
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"{path}: {raw!r} is out of range for `{kind}`") from exc


__all__ = ["AnyPayload", "Record", "is_zero_element", "zero_value"]
