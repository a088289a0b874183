"""Read-only, path-tracking views over record instances."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

from fieldguard.errors import UnknownFieldError
from fieldguard.records import Record, is_zero_element, zero_value
from fieldguard.schema import FieldDescriptor, FieldKind, RecordType, TypeRegistry


@dataclass(frozen=True, slots=True, eq=False)
class RecordView:
    """A record seen from the root of one validation call.

    ``path`` holds the field names leading from the root record to ``record``; it is empty for
    the root itself.
    """

    record: Record
    path: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.record, Record):
            raise TypeError("RecordView.record: expected Record")
        object.__setattr__(self, "path", tuple(self.path))

    @classmethod
    def top_level(cls, record: Record) -> RecordView:
        return cls(record)

    @property
    def type_name(self) -> str:
        return self.record.type_name

    def declaration(self) -> RecordType:
        return self.record.record_type

    def field_path(self, field_name: str) -> tuple[str, ...]:
        return (*self.path, field_name)

    def nested_in(self, segment: str, record: Record) -> RecordView:
        return RecordView(record, (*self.path, segment))

    def value_of(self, field: FieldDescriptor | str) -> FieldValue:
        declaration = self.declaration()
        if isinstance(field, str):
            descriptor = declaration.require_field(field)
        else:
            if not declaration.declares(field):
                raise UnknownFieldError(
                    f"field `{field.qualified_name}` (number {field.number}) "
                    f"is not declared by `{declaration.name}`"
                )
            descriptor = declaration.require_field(field.name)
        return FieldValue.of(self, descriptor, self.record.get(descriptor.name))

    def value_at(
        self,
        path: Sequence[str] | str,
        *,
        leaf: FieldDescriptor | None = None,
        types: TypeRegistry | None = None,
    ) -> FieldValue:
        """Follow ``path`` through singular message fields and read the leaf.

        An unset intermediate message makes the leaf read as its zero value; the leaf
        declaration then comes from ``leaf`` or is looked up in ``types``.
        """

        segments = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
        if not segments:
            raise UnknownFieldError(f"empty field path in type `{self.type_name}`")
        view = self
        for segment in segments[:-1]:
            descriptor = view.declaration().require_field(segment)
            if descriptor.kind is not FieldKind.MESSAGE or not descriptor.is_singular:
                raise UnknownFieldError(
                    f"cannot resolve `{'.'.join(segments)}`: `{descriptor.qualified_name}` "
                    "is not a singular message field"
                )
            nested = view.record.get(segment)
            if nested is None:
                if leaf is None:
                    if types is None:
                        raise UnknownFieldError(
                            f"cannot resolve `{'.'.join(segments)}` through the unset "
                            f"field `{descriptor.qualified_name}` without a type registry"
                        )
                    leaf = types.resolve_field_path(self.type_name, segments)
                return FieldValue.of(view, leaf, zero_value(leaf))
            assert isinstance(nested, Record)
            view = view.nested_in(segment, nested)
        return view.value_of(segments[-1])

    def active_case(self, oneof_name: str) -> str | None:
        return self.record.active_case(oneof_name)


class NonDefaultValues:
    """Restartable lazy iteration over the non-default elements of a field value."""

    __slots__ = ("_kind", "_values")

    def __init__(self, kind: FieldKind, values: tuple[object, ...]) -> None:
        self._kind = kind
        self._values = values

    def __iter__(self) -> Iterator[object]:
        for element in self._values:
            if not is_zero_element(self._kind, element):
                yield element

    def __bool__(self) -> bool:
        return any(True for _ in self)


@dataclass(frozen=True, slots=True, eq=False)
class FieldValue:
    """The current value(s) of one field inside a :class:`RecordView`."""

    values: tuple[object, ...]
    is_default: bool
    context: RecordView
    field: FieldDescriptor

    @classmethod
    def of(cls, context: RecordView, field: FieldDescriptor, raw: object) -> FieldValue:
        if field.is_repeated:
            values = tuple(raw)  # type: ignore[arg-type]
            return cls(values, not values, context, field)
        if field.is_map:
            assert isinstance(raw, Mapping)
            values = tuple(raw.values())
            return cls(values, not values, context, field)
        return cls((raw,), is_zero_element(field.kind, raw), context, field)

    @property
    def field_path(self) -> tuple[str, ...]:
        return self.context.field_path(self.field.name)

    def non_default(self) -> NonDefaultValues:
        return NonDefaultValues(self.field.kind, self.values)

    def single_value(self) -> object:
        if not self.field.is_singular:
            raise ValueError(
                f"{self.field.qualified_name}: `{self.field.type_label}` has no single value"
            )
        return self.values[0]

    def __iter__(self) -> Iterator[object]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


__all__ = ["FieldValue", "NonDefaultValues", "RecordView"]
