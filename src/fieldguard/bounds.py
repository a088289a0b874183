"""
fieldguard — numeric bounds.

File: src/fieldguard/bounds.py

Purpose
- Turn bound text (a numeric literal or a reference to a sibling numeric field) and range
  notation such as ``[0..100]`` or ``(0.0 .. 1.0]`` into typed bound objects.

Functional requirements
- Every failure is a construction-time ``BoundParseError``; nothing here is deferred to
  validation except the value of a referenced field.
- Self-references and references to non-numeric or collection fields are rejected.
- Two literal bounds of one range must describe a non-empty interval.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from fieldguard.errors import (
    BoundParseError,
    NumberParseError,
    NumericTypeMismatchError,
    UnknownFieldError,
)
from fieldguard.numeric import NumericValue, common_kind, parse_number
from fieldguard.schema import FieldDescriptor, TypeRegistry

if TYPE_CHECKING:
    from fieldguard.access import RecordView

_RANGE_RE: Final[re.Pattern[str]] = re.compile(r"^([\[(]) ?(.+?) ?\.\. ?(.+?) ?([\])])$")
_SEGMENT_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True, slots=True)
class FieldReference:
    """A bound whose value is read from another numeric field of the same record."""

    path: tuple[str, ...]
    field: FieldDescriptor

    @property
    def text(self) -> str:
        return ".".join(self.path)


@dataclass(frozen=True, slots=True)
class NumericBound:
    value: NumericValue | FieldReference
    exclusive: bool = False

    @property
    def is_reference(self) -> bool:
        return isinstance(self.value, FieldReference)

    @property
    def text(self) -> str:
        if isinstance(self.value, FieldReference):
            return self.value.text
        return self.value.to_text()

    def resolve(self, view: RecordView) -> NumericValue:
        """Return the literal, or the current value of the referenced field in ``view``."""

        if isinstance(self.value, NumericValue):
            return self.value
        reference = self.value
        kind = reference.field.numeric_kind
        assert kind is not None
        current = view.value_at(reference.path, leaf=reference.field).single_value()
        return NumericValue(kind, current)  # type: ignore[arg-type]

    def admits_from_below(self, value: NumericValue, resolved: NumericValue) -> bool:
        """Return whether ``value`` lies above this bound when used as a minimum."""

        candidate, limit = _aligned(value, resolved)
        return candidate > limit if self.exclusive else candidate >= limit

    def admits_from_above(self, value: NumericValue, resolved: NumericValue) -> bool:
        """Return whether ``value`` lies below this bound when used as a maximum."""

        candidate, limit = _aligned(value, resolved)
        return candidate < limit if self.exclusive else candidate <= limit

    @property
    def lower_operator(self) -> str:
        return ">" if self.exclusive else ">="

    @property
    def upper_operator(self) -> str:
        return "<" if self.exclusive else "<="


@dataclass(frozen=True, slots=True)
class RangeBounds:
    lower: NumericBound
    upper: NumericBound
    notation: str


def parse_bound(
    text: str,
    field: FieldDescriptor,
    types: TypeRegistry,
    *,
    exclusive: bool = False,
) -> NumericBound:
    """Parse one bound for the numeric ``field``.

    Text starting with a letter or an underscore is a dotted path to another numeric field of
    the record that declares ``field``; anything else is a literal of ``field``'s kind.
    """

    kind = field.numeric_kind
    if kind is None:
        raise BoundParseError(
            f"field `{field.qualified_name}` of type `{field.type_label}` cannot have a "
            "numeric bound"
        )
    if not isinstance(text, str) or not text.strip():
        raise BoundParseError(f"the bound for field `{field.qualified_name}` must not be empty")

    if text[0].isalpha() or text[0] == "_":
        return NumericBound(_parse_reference(text, field, types), exclusive)

    try:
        literal = parse_number(text, kind)
    except NumberParseError as exc:
        raise BoundParseError(f"invalid bound for field `{field.qualified_name}`: {exc}") from exc
    return NumericBound(literal, exclusive)


def parse_range(notation: str, field: FieldDescriptor, types: TypeRegistry) -> RangeBounds:
    """Parse ``[lower..upper]`` notation; ``(`` and ``)`` make the matching side exclusive."""

    if not isinstance(notation, str):
        raise BoundParseError(f"range for field `{field.qualified_name}` must be a string")
    match = _RANGE_RE.fullmatch(notation)
    if match is None:
        raise BoundParseError(
            f"invalid range `{notation}` for field `{field.qualified_name}`: expected a notation "
            "like `[0..100]`, `(0..100]` or `[0.0 .. 1.0)`"
        )
    opening, lower_text, upper_text, closing = match.groups()
    lower = parse_bound(lower_text, field, types, exclusive=opening == "(")
    upper = parse_bound(upper_text, field, types, exclusive=closing == ")")

    if isinstance(lower.value, NumericValue) and isinstance(upper.value, NumericValue):
        empty = lower.value > upper.value or (
            lower.value == upper.value and (lower.exclusive or upper.exclusive)
        )
        if empty:
            raise BoundParseError(
                f"invalid range `{notation}` for field `{field.qualified_name}`: "
                f"the lower bound `{lower.text}` must not exceed the upper bound `{upper.text}`"
            )
    return RangeBounds(lower=lower, upper=upper, notation=notation)


def _parse_reference(text: str, field: FieldDescriptor, types: TypeRegistry) -> FieldReference:
    segments = tuple(text.split("."))
    if any(_SEGMENT_RE.fullmatch(segment) is None for segment in segments):
        raise BoundParseError(
            f"invalid field reference `{text}` in a bound of `{field.qualified_name}`"
        )
    if not field.declaring_type:
        raise BoundParseError(
            f"field `{field.name}` must belong to a record type before it can reference `{text}`"
        )
    if segments == (field.name,):
        raise BoundParseError(f"field `{field.qualified_name}` cannot use itself as a bound")

    try:
        target = types.resolve_field_path(field.declaring_type, segments)
    except UnknownFieldError as exc:
        raise BoundParseError(
            f"invalid bound `{text}` for field `{field.qualified_name}`: {exc}"
        ) from exc

    target_kind = target.numeric_kind
    if target_kind is None or not target.is_singular:
        raise BoundParseError(
            f"bound `{text}` of field `{field.qualified_name}` must refer to a singular numeric "
            f"field, but `{target.qualified_name}` is `{target.type_label}`"
        )
    assert field.numeric_kind is not None
    try:
        common_kind(field.numeric_kind, target_kind)
    except NumericTypeMismatchError as exc:
        raise BoundParseError(
            f"bound `{text}` of field `{field.qualified_name}`: {exc}"
        ) from exc
    return FieldReference(path=segments, field=target)


def _aligned(value: NumericValue, limit: NumericValue) -> tuple[NumericValue, NumericValue]:
    kind = common_kind(value.kind, limit.kind)
    return value.widen_to(kind), limit.widen_to(kind)


__all__ = [
    "FieldReference",
    "NumericBound",
    "RangeBounds",
    "parse_bound",
    "parse_range",
]
