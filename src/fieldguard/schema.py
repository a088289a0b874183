"""Record type declarations and the type registry used for reflection."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from fieldguard.errors import UnknownFieldError, UnknownTypeError
from fieldguard.numeric import NumericKind

if TYPE_CHECKING:
    from fieldguard.records import AnyPayload, Record

TYPE_URL_PREFIX: Final[str] = "type.fieldguard.dev"

_FIELD_NAME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TYPE_NAME_RE: Final[re.Pattern[str]] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*$"
)


class FieldKind(StrEnum):
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"
    ANY = "any"

    @property
    def numeric_kind(self) -> NumericKind | None:
        return _NUMERIC_KINDS.get(self)

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_KINDS


_NUMERIC_KINDS: Final[dict[FieldKind, NumericKind]] = {
    FieldKind.INT32: NumericKind.INT32,
    FieldKind.INT64: NumericKind.INT64,
    FieldKind.UINT32: NumericKind.UINT32,
    FieldKind.UINT64: NumericKind.UINT64,
    FieldKind.FLOAT: NumericKind.FLOAT,
    FieldKind.DOUBLE: NumericKind.DOUBLE,
}

_MAP_KEY_KINDS: Final[frozenset[FieldKind]] = frozenset(
    {
        FieldKind.INT32,
        FieldKind.INT64,
        FieldKind.UINT32,
        FieldKind.UINT64,
        FieldKind.BOOL,
        FieldKind.STRING,
    }
)


class Cardinality(StrEnum):
    SINGULAR = "singular"
    REPEATED = "repeated"
    MAP = "map"


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Declaration of one field.

    ``number`` is the stable identity of the field inside its declaring type. A zero number is
    replaced by the 1-based position when the field is bound to a :class:`RecordType`.
    """

    name: str
    kind: FieldKind
    number: int = 0
    cardinality: Cardinality = Cardinality.SINGULAR
    message_type: str | None = None
    oneof: str | None = None
    key_kind: FieldKind | None = None
    declaring_type: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or _FIELD_NAME_RE.fullmatch(self.name) is None:
            raise ValueError(f"FieldDescriptor.name: invalid field name {self.name!r}")
        object.__setattr__(self, "kind", FieldKind(self.kind))
        object.__setattr__(self, "cardinality", Cardinality(self.cardinality))
        if isinstance(self.number, bool) or not isinstance(self.number, int) or self.number < 0:
            raise ValueError(f"{self.name}.number: expected a non-negative integer")

        if self.kind is FieldKind.MESSAGE:
            if not self.message_type or _TYPE_NAME_RE.fullmatch(self.message_type) is None:
                raise ValueError(f"{self.name}.message_type: message fields require a type name")
        elif self.message_type is not None:
            raise ValueError(f"{self.name}.message_type: only message fields name a type")

        if self.cardinality is Cardinality.MAP:
            key_kind = FieldKind(self.key_kind) if self.key_kind is not None else FieldKind.STRING
            if key_kind not in _MAP_KEY_KINDS:
                raise ValueError(f"{self.name}.key_kind: `{key_kind}` cannot be a map key")
            object.__setattr__(self, "key_kind", key_kind)
        elif self.key_kind is not None:
            raise ValueError(f"{self.name}.key_kind: only map fields declare a key kind")

        if self.oneof is not None:
            if self.cardinality is not Cardinality.SINGULAR:
                raise ValueError(f"{self.name}.oneof: collection fields cannot belong to a oneof")
            if _FIELD_NAME_RE.fullmatch(self.oneof) is None:
                raise ValueError(f"{self.name}.oneof: invalid group name {self.oneof!r}")

    @property
    def is_singular(self) -> bool:
        return self.cardinality is Cardinality.SINGULAR

    @property
    def is_repeated(self) -> bool:
        return self.cardinality is Cardinality.REPEATED

    @property
    def is_map(self) -> bool:
        return self.cardinality is Cardinality.MAP

    @property
    def is_collection(self) -> bool:
        return self.cardinality is not Cardinality.SINGULAR

    @property
    def numeric_kind(self) -> NumericKind | None:
        return self.kind.numeric_kind

    @property
    def qualified_name(self) -> str:
        if not self.declaring_type:
            return self.name
        return f"{self.declaring_type}.{self.name}"

    @property
    def type_label(self) -> str:
        """Human-readable type, e.g. ``int32``, ``repeated string`` or ``map<string, Address>``."""

        element = self.message_type if self.kind is FieldKind.MESSAGE else str(self.kind)
        if self.is_repeated:
            return f"repeated {element}"
        if self.is_map:
            return f"map<{self.key_kind}, {element}>"
        return str(element)


@dataclass(frozen=True, slots=True)
class RecordType:
    """An ordered set of field declarations under one type name."""

    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    _by_name: Mapping[str, FieldDescriptor] = field(
        init=False, repr=False, compare=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or _TYPE_NAME_RE.fullmatch(self.name) is None:
            raise ValueError(f"RecordType.name: invalid type name {self.name!r}")

        bound: list[FieldDescriptor] = []
        by_name: dict[str, FieldDescriptor] = {}
        numbers: set[int] = set()
        for position, declared in enumerate(self.fields, start=1):
            if not isinstance(declared, FieldDescriptor):
                raise ValueError(f"{self.name}.fields[{position - 1}]: expected FieldDescriptor")
            if declared.declaring_type and declared.declaring_type != self.name:
                raise ValueError(
                    f"{self.name}.{declared.name}: already declared by {declared.declaring_type}"
                )
            number = declared.number or position
            descriptor = replace(declared, number=number, declaring_type=self.name)
            if descriptor.name in by_name:
                raise ValueError(f"{self.name}: duplicate field name {descriptor.name!r}")
            if number in numbers:
                raise ValueError(f"{self.name}: duplicate field number {number}")
            numbers.add(number)
            by_name[descriptor.name] = descriptor
            bound.append(descriptor)

        object.__setattr__(self, "fields", tuple(bound))
        object.__setattr__(self, "_by_name", MappingProxyType(by_name))

    @classmethod
    def define(cls, name: str, *fields: FieldDescriptor) -> RecordType:
        return cls(name=name, fields=tuple(fields))

    def find_field(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    def require_field(self, name: str) -> FieldDescriptor:
        found = self._by_name.get(name)
        if found is None:
            raise UnknownFieldError(f"type `{self.name}` does not declare a field `{name}`")
        return found

    def field_names(self) -> tuple[str, ...]:
        return tuple(item.name for item in self.fields)

    def oneof_names(self) -> tuple[str, ...]:
        names: list[str] = []
        for item in self.fields:
            if item.oneof is not None and item.oneof not in names:
                names.append(item.oneof)
        return tuple(names)

    def oneof_cases(self, oneof_name: str) -> tuple[str, ...]:
        cases = tuple(item.name for item in self.fields if item.oneof == oneof_name)
        if not cases:
            raise UnknownFieldError(f"type `{self.name}` does not declare a oneof `{oneof_name}`")
        return cases

    def declares(self, descriptor: FieldDescriptor) -> bool:
        """Return whether ``descriptor`` is this type's field of the same name and number."""

        own = self._by_name.get(descriptor.name)
        return (
            own is not None
            and descriptor.declaring_type == self.name
            and own.number == descriptor.number
        )


class TypeRegistry:
    """Immutable lookup of record types by name."""

    __slots__ = ("_types",)

    def __init__(self, types: Iterable[RecordType] = ()) -> None:
        by_name: dict[str, RecordType] = {}
        for record_type in types:
            if not isinstance(record_type, RecordType):
                raise ValueError("TypeRegistry.types entries must be RecordType")
            if record_type.name in by_name:
                raise ValueError(f"duplicate record type name: {record_type.name}")
            by_name[record_type.name] = record_type
        self._types = MappingProxyType(by_name)

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[RecordType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._types)

    def with_types(self, *types: RecordType) -> TypeRegistry:
        return TypeRegistry((*self._types.values(), *types))

    def find(self, type_name: str) -> RecordType | None:
        return self._types.get(type_name)

    def require(self, type_name: str) -> RecordType:
        found = self._types.get(type_name)
        if found is None:
            raise UnknownTypeError(f"unknown record type `{type_name}`")
        return found

    def find_by_url(self, type_url: str) -> RecordType | None:
        return self._types.get(type_name_from_url(type_url))

    def unpack(self, payload: AnyPayload) -> Record | None:
        """Materialize a packed payload, or return ``None`` when its type is not registered."""

        record_type = self.find_by_url(payload.type_url)
        if record_type is None:
            return None
        return payload.unpack_as(record_type)

    def resolve_field_path(self, type_name: str, path: Sequence[str]) -> FieldDescriptor:
        """Resolve ``path`` starting at ``type_name`` through singular message fields."""

        if not path:
            raise UnknownFieldError(f"empty field path in type `{type_name}`")
        current = self.find(type_name)
        if current is None:
            raise UnknownFieldError(
                f"cannot resolve `{'.'.join(path)}`: unknown record type `{type_name}`"
            )
        for index, segment in enumerate(path):
            descriptor = current.find_field(segment)
            if descriptor is None:
                raise UnknownFieldError(
                    f"cannot resolve `{'.'.join(path)}`: type `{current.name}` "
                    f"does not declare a field `{segment}`"
                )
            if index == len(path) - 1:
                return descriptor
            if descriptor.kind is not FieldKind.MESSAGE or not descriptor.is_singular:
                raise UnknownFieldError(
                    f"cannot resolve `{'.'.join(path)}`: `{descriptor.qualified_name}` "
                    "is not a singular message field"
                )
            assert descriptor.message_type is not None
            nested = self.find(descriptor.message_type)
            if nested is None:
                raise UnknownFieldError(
                    f"cannot resolve `{'.'.join(path)}`: unknown record type "
                    f"`{descriptor.message_type}`"
                )
            current = nested
        raise AssertionError("unreachable")


def type_url_for(type_name: str, *, prefix: str = TYPE_URL_PREFIX) -> str:
    return f"{prefix}/{type_name}"


def type_name_from_url(type_url: str) -> str:
    return type_url.rsplit("/", 1)[-1]


__all__ = [
    "TYPE_URL_PREFIX",
    "Cardinality",
    "FieldDescriptor",
    "FieldKind",
    "RecordType",
    "TypeRegistry",
    "type_name_from_url",
    "type_url_for",
]
