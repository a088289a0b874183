"""
fieldguard — numeric domain.

File: src/fieldguard/numeric.py

Purpose
- Typed numeric values, textual parsing and printing, and the lossless widening table used to
  decide whether a bound and a field value can be compared.

Functional requirements
- Integer kinds reject a decimal point; floating kinds require one.
- Out-of-range text fails with an error naming the text and the target kind.
- Values of different kinds are never ordered against each other.
"""

from __future__ import annotations

import math
import re
import struct
from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from fieldguard.errors import NumberParseError, NumericTypeMismatchError


class NumericKind(StrEnum):
    BYTE = "byte"
    SHORT = "short"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"

    @property
    def is_floating(self) -> bool:
        return self in (NumericKind.FLOAT, NumericKind.DOUBLE)

    @property
    def is_unsigned(self) -> bool:
        return self in (NumericKind.UINT32, NumericKind.UINT64)


INTEGER_PATTERN: Final[re.Pattern[str]] = re.compile(r"[-+]?\d+")
FLOAT_PATTERN: Final[re.Pattern[str]] = re.compile(r"[-+]?\d+\.\d+([eE][-+]?\d+)?")

_INTEGER_LIMITS: Final[dict[NumericKind, tuple[int, int]]] = {
    NumericKind.BYTE: (-(2**7), 2**7 - 1),
    NumericKind.SHORT: (-(2**15), 2**15 - 1),
    NumericKind.INT32: (-(2**31), 2**31 - 1),
    NumericKind.INT64: (-(2**63), 2**63 - 1),
    NumericKind.UINT32: (0, 2**32 - 1),
    NumericKind.UINT64: (0, 2**64 - 1),
}

# target kind -> source kinds convertible into it without loss
_WIDENING: Final[dict[NumericKind, frozenset[NumericKind]]] = {
    NumericKind.BYTE: frozenset({NumericKind.BYTE}),
    NumericKind.SHORT: frozenset({NumericKind.BYTE, NumericKind.SHORT}),
    NumericKind.INT32: frozenset({NumericKind.BYTE, NumericKind.SHORT, NumericKind.INT32}),
    NumericKind.INT64: frozenset(
        {NumericKind.BYTE, NumericKind.SHORT, NumericKind.INT32, NumericKind.INT64}
    ),
    NumericKind.UINT32: frozenset({NumericKind.UINT32}),
    NumericKind.UINT64: frozenset({NumericKind.UINT32, NumericKind.UINT64}),
    NumericKind.FLOAT: frozenset({NumericKind.FLOAT}),
    NumericKind.DOUBLE: frozenset({NumericKind.FLOAT, NumericKind.DOUBLE}),
}


def widens(source: NumericKind, target: NumericKind) -> bool:
    """Return whether every ``source`` value is representable as ``target`` without loss."""

    return source in _WIDENING[target]


def common_kind(first: NumericKind, second: NumericKind) -> NumericKind:
    """Return the wider of two kinds, failing when neither widens into the other."""

    if widens(first, second):
        return second
    if widens(second, first):
        return first
    raise NumericTypeMismatchError(
        f"numeric kinds `{first}` and `{second}` cannot be compared without loss of precision"
    )


def integer_limits(kind: NumericKind) -> tuple[int, int]:
    """Return the inclusive ``(min, max)`` range of an integer kind."""

    if kind.is_floating:
        raise ValueError(f"{kind}: floating kinds have no integer limits")
    return _INTEGER_LIMITS[kind]


@dataclass(frozen=True, slots=True)
class NumericValue:
    """One number tagged with its numeric kind.

    Ordering is defined only between values of the same kind; mixing kinds is a programming
    error that construction-time checks must have prevented, so it raises instead of returning
    ``NotImplemented``.
    """

    kind: NumericKind
    value: int | float

    def __post_init__(self) -> None:
        kind = NumericKind(self.kind)
        object.__setattr__(self, "kind", kind)
        raw = self.value
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise TypeError(f"NumericValue.value: expected a number, got {type(raw).__name__}")
        if kind.is_floating:
            number = float(raw)
            if kind is NumericKind.FLOAT:
                try:
                    number = _to_float32(number)
                except OverflowError as exc:
                    raise ValueError(
                        f"NumericValue.value: {raw!r} is out of range for {kind}"
                    ) from exc
            object.__setattr__(self, "value", number)
            return
        if not isinstance(raw, int):
            raise TypeError(f"NumericValue.value: {kind} requires an integer, got {raw!r}")
        low, high = _INTEGER_LIMITS[kind]
        if not low <= raw <= high:
            raise ValueError(f"NumericValue.value: {raw} is out of range for {kind}")

    @property
    def is_nan(self) -> bool:
        return isinstance(self.value, float) and math.isnan(self.value)

    def widen_to(self, kind: NumericKind) -> NumericValue:
        """Return this value converted to ``kind``, which must be at least as wide."""

        if not widens(self.kind, kind):
            raise NumericTypeMismatchError(
                f"value `{self.to_text()}` of kind `{self.kind}` cannot be widened to `{kind}`"
            )
        if kind is self.kind:
            return self
        if kind.is_floating:
            return NumericValue(kind, float(self.value))
        return NumericValue(kind, self.value)

    def to_text(self) -> str:
        if not isinstance(self.value, float):
            return str(self.value)
        if self.kind is NumericKind.FLOAT:
            return _float_text(self.value, single=True)
        return _float_text(self.value, single=False)

    def _same_kind(self, other: object) -> NumericValue:
        if not isinstance(other, NumericValue):
            raise TypeError(f"cannot compare NumericValue with {type(other).__name__}")
        if other.kind is not self.kind:
            raise NumericTypeMismatchError(
                f"illegal comparison of `{self.kind}` value `{self.to_text()}` "
                f"with `{other.kind}` value `{other.to_text()}`"
            )
        return other

    # NaN compares false against everything, as float comparisons do.
    def __lt__(self, other: object) -> bool:
        return self.value < self._same_kind(other).value

    def __le__(self, other: object) -> bool:
        return self.value <= self._same_kind(other).value

    def __gt__(self, other: object) -> bool:
        return self.value > self._same_kind(other).value

    def __ge__(self, other: object) -> bool:
        return self.value >= self._same_kind(other).value

    def __str__(self) -> str:
        return self.to_text()


def parse_number(text: str, kind: NumericKind) -> NumericValue:
    """Parse ``text`` as a literal of ``kind``."""

    target = NumericKind(kind)
    if not isinstance(text, str) or not text:
        raise NumberParseError(f"cannot parse an empty value as `{target}`")

    if target.is_floating:
        if FLOAT_PATTERN.fullmatch(text) is None:
            raise NumberParseError(
                f"cannot parse `{text}` as `{target}`: a floating-point number is required "
                "(examples: `12.3`, `-0.1`, `6.02E2`)"
            )
        number = float(text)
        if target is NumericKind.FLOAT:
            try:
                number = _to_float32(number)
            except OverflowError:
                number = math.inf
        if not math.isfinite(number):
            raise NumberParseError(
                f"cannot parse `{text}` as `{target}`: the value is out of range"
            )
        return NumericValue(target, number)

    if INTEGER_PATTERN.fullmatch(text) is None:
        raise NumberParseError(
            f"cannot parse `{text}` as `{target}`: an integer number is required "
            "(examples: `123`, `-567823`)"
        )
    integer = int(text)
    low, high = _INTEGER_LIMITS[target]
    if not low <= integer <= high:
        raise NumberParseError(f"cannot parse `{text}` as `{target}`: the value is out of range")
    return NumericValue(target, integer)


def _to_float32(number: float) -> float:
    if math.isnan(number) or math.isinf(number):
        return number
    return struct.unpack(">f", struct.pack(">f", number))[0]


def _float_text(number: float, *, single: bool) -> str:
    if math.isnan(number) or math.isinf(number):
        return repr(number)
    text = repr(number)
    if single:
        for precision in range(6, 10):
            candidate = f"{number:.{precision}g}"
            if _to_float32(float(candidate)) == number:
                text = candidate
                break
    mantissa, _, exponent = text.partition("e")
    if "." not in mantissa:
        mantissa = f"{mantissa}.0"
    return f"{mantissa}e{exponent}" if exponent else mantissa


__all__ = [
    "FLOAT_PATTERN",
    "INTEGER_PATTERN",
    "NumericKind",
    "NumericValue",
    "common_kind",
    "integer_limits",
    "parse_number",
    "widens",
]
