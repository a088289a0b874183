"""
fieldguard — constraint model.

File: src/fieldguard/constraints.py

Purpose
- The closed set of constraint variants and the immutable per-type ConstraintSet.

Functional requirements
- Every variant is validated when it is built: field applicability, parameters, and the
  placeholders its error message may use.
- Constraints are immutable and safe to share between threads once built.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final, TypeAlias

from fieldguard.bounds import NumericBound, RangeBounds, parse_bound, parse_range
from fieldguard.errors import ConstraintDefinitionError, UnknownFieldError
from fieldguard.schema import FieldDescriptor, FieldKind, RecordType, TypeRegistry
from fieldguard.templates import Placeholder, check_placeholders

if TYPE_CHECKING:
    from fieldguard.access import RecordView
    from fieldguard.violations import ConstraintViolation

CustomEvaluator: TypeAlias = "Callable[[RecordView], Sequence[ConstraintViolation]]"

_FIELD_PLACEHOLDERS: Final[frozenset[str]] = frozenset(
    {Placeholder.FIELD_PATH, Placeholder.FIELD_TYPE, Placeholder.PARENT_TYPE}
)
_VALUE_PLACEHOLDERS: Final[frozenset[str]] = _FIELD_PLACEHOLDERS | {Placeholder.FIELD_VALUE}

REQUIRED_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` "
    "must have a non-default value."
)
REQUIRED_COLLECTION_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must not be empty."
)
RANGE_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must be within "
    "the range `${range.value}`, but it has the value `${field.value}`."
)
MIN_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must be "
    "${min.operator} ${min.value}, but it has the value `${field.value}`."
)
MAX_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must be "
    "${max.operator} ${max.value}, but it has the value `${field.value}`."
)
PATTERN_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must match "
    "the regular expression `${regex.pattern}` (modifiers: ${regex.modifiers}), "
    "but it has the value `${field.value}`."
)
DISTINCT_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must not contain "
    "duplicates, but it has the duplicates `${field.duplicates}`."
)
COMPANION_MESSAGE: Final[str] = (
    "The field `${goes.companion}` must also be set when `${field.path}` is set "
    "in `${parent.type}`."
)
VALIDATE_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` of the type `${field.type}` must be valid."
)
UNKNOWN_ANY_MESSAGE: Final[str] = (
    "The field `${parent.type}.${field.path}` packs the type `${any.type_url}`, "
    "which is not known."
)
FIELD_GROUP_MESSAGE: Final[str] = (
    "The message `${message.type}` must have at least one of the field groups set: "
    "`${require.fields}`."
)
ONEOF_MESSAGE: Final[str] = "One of the fields in the `${group.path}` group must be set."


@dataclass(frozen=True, slots=True)
class Required:
    """The field must hold a non-default value.

    A repeated or map field fails when it is empty; with ``collection_needs_non_default_element``
    it also fails when every element is the zero value of its kind.
    """

    field: FieldDescriptor
    error_message: str = ""
    collection_needs_non_default_element: bool = False
    enabled: bool = True

    def __post_init__(self) -> None:
        _require_bound_field("Required", self.field)
        scalar = self.field.kind.is_numeric or self.field.kind is FieldKind.BOOL
        if self.field.is_singular and scalar:
            raise ConstraintDefinitionError(
                f"field `{self.field.qualified_name}` of the type `{self.field.type_label}` "
                "cannot be required: every value of it is meaningful"
            )
        default = REQUIRED_COLLECTION_MESSAGE if self.field.is_collection else REQUIRED_MESSAGE
        _set_message(self, default)

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class NumericRange:
    """Lower and/or upper numeric bound on every element of a numeric field."""

    field: FieldDescriptor
    lower: NumericBound | None = None
    upper: NumericBound | None = None
    notation: str = ""
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_bound_field("NumericRange", self.field)
        if self.field.numeric_kind is None:
            raise ConstraintDefinitionError(
                f"NumericRange: field `{self.field.qualified_name}` of the type "
                f"`{self.field.type_label}` is not numeric"
            )
        if self.lower is None and self.upper is None:
            raise ConstraintDefinitionError(
                f"NumericRange on `{self.field.qualified_name}` needs at least one bound"
            )
        if not self.notation and self.lower is not None and self.upper is not None:
            opening = "(" if self.lower.exclusive else "["
            closing = ")" if self.upper.exclusive else "]"
            notation = f"{opening}{self.lower.text}..{self.upper.text}{closing}"
            object.__setattr__(self, "notation", notation)
        if self.upper is None:
            default = MIN_MESSAGE
        elif self.lower is None:
            default = MAX_MESSAGE
        else:
            default = RANGE_MESSAGE
        _set_message(self, default)

    @classmethod
    def from_notation(
        cls,
        field: FieldDescriptor,
        notation: str,
        types: TypeRegistry,
        *,
        error_message: str = "",
    ) -> NumericRange:
        bounds: RangeBounds = parse_range(notation, field, types)
        return cls(field, bounds.lower, bounds.upper, bounds.notation, error_message)

    @classmethod
    def minimum(
        cls,
        field: FieldDescriptor,
        text: str,
        types: TypeRegistry,
        *,
        exclusive: bool = False,
        error_message: str = "",
    ) -> NumericRange:
        bound = parse_bound(text, field, types, exclusive=exclusive)
        return cls(field, lower=bound, error_message=error_message)

    @classmethod
    def maximum(
        cls,
        field: FieldDescriptor,
        text: str,
        types: TypeRegistry,
        *,
        exclusive: bool = False,
        error_message: str = "",
    ) -> NumericRange:
        bound = parse_bound(text, field, types, exclusive=exclusive)
        return cls(field, upper=bound, error_message=error_message)

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class RegexFlags:
    dot_all: bool = False
    case_insensitive: bool = False
    multiline: bool = False
    unicode: bool = False

    def to_re_flags(self) -> int:
        flags = 0 if self.unicode else re.ASCII
        if self.dot_all:
            flags |= re.DOTALL
        if self.case_insensitive:
            flags |= re.IGNORECASE
        if self.multiline:
            flags |= re.MULTILINE
        return flags

    def describe(self) -> str:
        names = [
            name
            for name, enabled in (
                ("dot_all", self.dot_all),
                ("case_insensitive", self.case_insensitive),
                ("multiline", self.multiline),
                ("unicode", self.unicode),
            )
            if enabled
        ]
        return ", ".join(names) if names else "none"


@dataclass(frozen=True, slots=True)
class Pattern:
    field: FieldDescriptor
    regex: str
    flags: RegexFlags = dataclass_field(default_factory=RegexFlags)
    allows_partial_match: bool = False
    error_message: str = ""
    compiled: re.Pattern[str] = dataclass_field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _require_bound_field("Pattern", self.field)
        if self.field.kind is not FieldKind.STRING:
            raise ConstraintDefinitionError(
                f"Pattern: field `{self.field.qualified_name}` of the type "
                f"`{self.field.type_label}` is not a string field"
            )
        if not isinstance(self.regex, str) or not self.regex:
            raise ConstraintDefinitionError(
                f"Pattern on `{self.field.qualified_name}` needs a non-empty regular expression"
            )
        try:
            compiled = re.compile(self.regex, self.flags.to_re_flags())
        except re.error as exc:
            raise ConstraintDefinitionError(
                f"Pattern on `{self.field.qualified_name}`: invalid regular expression "
                f"`{self.regex}`: {exc}"
            ) from exc
        object.__setattr__(self, "compiled", compiled)
        _set_message(self, PATTERN_MESSAGE)

    def matches(self, text: str) -> bool:
        if self.allows_partial_match:
            return self.compiled.search(text) is not None
        return self.compiled.fullmatch(text) is not None

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class Distinct:
    field: FieldDescriptor
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_bound_field("Distinct", self.field)
        if not self.field.is_collection:
            raise ConstraintDefinitionError(
                f"Distinct: field `{self.field.qualified_name}` of the type "
                f"`{self.field.type_label}` is neither repeated nor a map"
            )
        _set_message(self, DISTINCT_MESSAGE)

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class Companion:
    """When ``field`` is set, the sibling named ``companion`` must be set too."""

    field: FieldDescriptor
    companion: str
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_bound_field("Companion", self.field)
        if not isinstance(self.companion, str) or not self.companion.strip():
            raise ConstraintDefinitionError(
                f"Companion on `{self.field.qualified_name}` must name a companion field"
            )
        if self.companion == self.field.name:
            raise ConstraintDefinitionError(
                f"field `{self.field.qualified_name}` cannot be its own companion"
            )
        _set_message(self, COMPANION_MESSAGE)

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class Validate:
    field: FieldDescriptor
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_bound_field("Validate", self.field)
        if self.field.kind not in (FieldKind.MESSAGE, FieldKind.ANY):
            raise ConstraintDefinitionError(
                f"Validate: field `{self.field.qualified_name}` of the type "
                f"`{self.field.type_label}` does not hold records"
            )
        _set_message(self, VALIDATE_MESSAGE)

    @property
    def type_name(self) -> str:
        return self.field.declaring_type


@dataclass(frozen=True, slots=True)
class FieldGroup:
    """At least one alternative must have all of its fields set."""

    type_name: str
    alternatives: tuple[frozenset[str], ...]
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_type_name("FieldGroup", self.type_name)
        alternatives = tuple(frozenset(alternative) for alternative in self.alternatives)
        if not alternatives:
            raise ConstraintDefinitionError(
                f"FieldGroup on `{self.type_name}` needs at least one alternative"
            )
        seen: set[frozenset[str]] = set()
        for alternative in alternatives:
            if not alternative:
                raise ConstraintDefinitionError(
                    f"FieldGroup on `{self.type_name}` has an empty alternative"
                )
            if alternative in seen:
                raise ConstraintDefinitionError(
                    f"FieldGroup on `{self.type_name}` repeats the alternative "
                    f"`{_render_alternative(alternative)}`"
                )
            seen.add(alternative)
        object.__setattr__(self, "alternatives", alternatives)
        _set_message(self, FIELD_GROUP_MESSAGE)

    @property
    def field_names(self) -> tuple[str, ...]:
        names: list[str] = []
        for alternative in self.alternatives:
            for name in sorted(alternative):
                if name not in names:
                    names.append(name)
        return tuple(names)

    def describe(self) -> str:
        return " | ".join(_render_alternative(alternative) for alternative in self.alternatives)


@dataclass(frozen=True, slots=True)
class OneofRequired:
    type_name: str
    oneof_name: str
    case_field_names: tuple[str, ...]
    error_message: str = ""

    def __post_init__(self) -> None:
        _require_type_name("OneofRequired", self.type_name)
        if not isinstance(self.oneof_name, str) or not self.oneof_name:
            raise ConstraintDefinitionError(
                f"OneofRequired on `{self.type_name}` must name a oneof group"
            )
        cases = tuple(self.case_field_names)
        if not cases:
            raise ConstraintDefinitionError(
                f"OneofRequired `{self.type_name}.{self.oneof_name}` has no case fields"
            )
        object.__setattr__(self, "case_field_names", cases)
        _set_message(self, ONEOF_MESSAGE)

    @classmethod
    def for_oneof(
        cls, record_type: RecordType, oneof_name: str, *, error_message: str = ""
    ) -> OneofRequired:
        cases = record_type.oneof_cases(oneof_name)
        return cls(record_type.name, oneof_name, cases, error_message)


@dataclass(frozen=True, slots=True)
class Custom:
    """Opaque plugin that reports its own violations for one record type."""

    type_name: str
    evaluator: CustomEvaluator
    name: str = ""

    def __post_init__(self) -> None:
        _require_type_name("Custom", self.type_name)
        if not callable(self.evaluator):
            raise ConstraintDefinitionError(
                f"Custom constraint on `{self.type_name}` needs a callable evaluator"
            )
        if not self.name:
            label = getattr(self.evaluator, "__qualname__", type(self.evaluator).__name__)
            object.__setattr__(self, "name", label)


Constraint: TypeAlias = (
    Required
    | NumericRange
    | Pattern
    | Distinct
    | Companion
    | Validate
    | FieldGroup
    | OneofRequired
    | Custom
)

CONSTRAINT_TYPES: Final[tuple[type, ...]] = (
    Required,
    NumericRange,
    Pattern,
    Distinct,
    Companion,
    Validate,
    FieldGroup,
    OneofRequired,
    Custom,
)

SUPPORTED_PLACEHOLDERS: Final = MappingProxyType(
    {
        Required: _FIELD_PLACEHOLDERS,
        NumericRange: _VALUE_PLACEHOLDERS | {Placeholder.RANGE_VALUE},
        Pattern: _VALUE_PLACEHOLDERS | {Placeholder.REGEX_PATTERN, Placeholder.REGEX_MODIFIERS},
        Distinct: _VALUE_PLACEHOLDERS | {Placeholder.FIELD_DUPLICATES},
        Companion: _VALUE_PLACEHOLDERS | {Placeholder.GOES_COMPANION},
        Validate: _VALUE_PLACEHOLDERS,
        FieldGroup: frozenset({Placeholder.MESSAGE_TYPE, Placeholder.REQUIRE_FIELDS}),
        OneofRequired: frozenset({Placeholder.GROUP_PATH, Placeholder.PARENT_TYPE}),
    }
)


def supported_placeholders(constraint: Constraint) -> frozenset[str]:
    """Placeholders the evaluator fills for this constraint, given its bounds and field shape."""

    supported = frozenset(SUPPORTED_PLACEHOLDERS[type(constraint)])
    if isinstance(constraint, NumericRange):
        if constraint.lower is not None:
            supported |= {Placeholder.MIN_VALUE, Placeholder.MIN_OPERATOR}
        if constraint.upper is not None:
            supported |= {Placeholder.MAX_VALUE, Placeholder.MAX_OPERATOR}
    elif isinstance(constraint, Validate):
        # only a singular Any field carries one type URL to report
        if constraint.field.kind is FieldKind.ANY and constraint.field.is_singular:
            supported |= {Placeholder.ANY_TYPE_URL}
    return supported


def parse_field_groups(notation: str, record_type: RecordType) -> tuple[frozenset[str], ...]:
    """Parse ``a & b | c`` into alternatives of field names declared by ``record_type``."""

    if not isinstance(notation, str) or not notation.strip():
        raise ConstraintDefinitionError(
            f"field group notation for `{record_type.name}` must not be empty"
        )
    alternatives: list[frozenset[str]] = []
    for raw_alternative in notation.split("|"):
        names: list[str] = []
        for raw_name in raw_alternative.split("&"):
            name = raw_name.strip()
            if not name:
                raise ConstraintDefinitionError(
                    f"invalid field group notation `{notation}`: empty field name"
                )
            if record_type.find_field(name) is None:
                raise UnknownFieldError(
                    f"invalid field group notation `{notation}`: type `{record_type.name}` "
                    f"does not declare a field `{name}`"
                )
            if name in names:
                raise ConstraintDefinitionError(
                    f"invalid field group notation `{notation}`: field `{name}` is repeated"
                )
            names.append(name)
        alternative = frozenset(names)
        if alternative in alternatives:
            raise ConstraintDefinitionError(
                f"invalid field group notation `{notation}`: the alternative "
                f"`{_render_alternative(alternative)}` is repeated"
            )
        alternatives.append(alternative)
    return tuple(alternatives)


@dataclass(frozen=True, slots=True)
class ConstraintSet:
    """The ordered constraints of one record type."""

    type_name: str
    constraints: tuple[Constraint, ...] = ()

    def __post_init__(self) -> None:
        _require_type_name("ConstraintSet", self.type_name)
        constraints = tuple(self.constraints)
        for index, constraint in enumerate(constraints):
            if not isinstance(constraint, CONSTRAINT_TYPES):
                raise ConstraintDefinitionError(
                    f"ConstraintSet `{self.type_name}`: constraints[{index}] is not a "
                    f"constraint: {type(constraint).__name__}"
                )
            if constraint.type_name != self.type_name:
                raise ConstraintDefinitionError(
                    f"ConstraintSet `{self.type_name}`: constraints[{index}] "
                    f"({type(constraint).__name__}) belongs to `{constraint.type_name}`"
                )
        object.__setattr__(self, "constraints", constraints)

    @classmethod
    def empty(cls, type_name: str) -> ConstraintSet:
        return cls(type_name)

    @classmethod
    def for_type(cls, record_type: RecordType, *constraints: Constraint) -> ConstraintSet:
        """Build a set and check every field name a constraint mentions against ``record_type``."""

        built = cls(record_type.name, tuple(constraints))
        for constraint in built.constraints:
            for name in _referenced_names(constraint):
                if record_type.find_field(name) is None:
                    raise UnknownFieldError(
                        f"{type(constraint).__name__} on `{record_type.name}` names the "
                        f"undeclared field `{name}`"
                    )
            target = getattr(constraint, "field", None)
            if isinstance(target, FieldDescriptor) and not record_type.declares(target):
                raise UnknownFieldError(
                    f"{type(constraint).__name__} targets `{target.qualified_name}`, "
                    f"which `{record_type.name}` does not declare"
                )
        return built

    def only_custom(self) -> ConstraintSet:
        return ConstraintSet(
            self.type_name, tuple(item for item in self.constraints if isinstance(item, Custom))
        )

    def with_constraints(self, *constraints: Constraint) -> ConstraintSet:
        return ConstraintSet(self.type_name, (*self.constraints, *constraints))

    @property
    def is_empty(self) -> bool:
        return not self.constraints

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self.constraints)

    def __len__(self) -> int:
        return len(self.constraints)


def _referenced_names(constraint: Constraint) -> Iterable[str]:
    if isinstance(constraint, Companion):
        return (constraint.companion,)
    if isinstance(constraint, FieldGroup):
        return constraint.field_names
    if isinstance(constraint, OneofRequired):
        return constraint.case_field_names
    return ()


def _require_bound_field(owner: str, descriptor: object) -> None:
    if not isinstance(descriptor, FieldDescriptor):
        raise ConstraintDefinitionError(f"{owner}.field: expected FieldDescriptor")
    if not descriptor.declaring_type:
        raise ConstraintDefinitionError(
            f"{owner}.field: `{descriptor.name}` must be taken from a RecordType"
        )


def _require_type_name(owner: str, type_name: object) -> None:
    if not isinstance(type_name, str) or not type_name.strip():
        raise ConstraintDefinitionError(f"{owner}.type_name: must be a non-empty string")


def _set_message(constraint: Constraint, default: str) -> None:
    message = constraint.error_message or default  # type: ignore[union-attr]
    if not isinstance(message, str):
        raise ConstraintDefinitionError(
            f"{type(constraint).__name__}.error_message: expected a string"
        )
    check_placeholders(
        message,
        supported_placeholders(constraint),
        owner=f"{type(constraint).__name__} on `{_owner_label(constraint)}`",
    )
    object.__setattr__(constraint, "error_message", message)


def _owner_label(constraint: Constraint) -> str:
    descriptor = getattr(constraint, "field", None)
    if isinstance(descriptor, FieldDescriptor):
        return descriptor.qualified_name
    return constraint.type_name


def _render_alternative(alternative: frozenset[str]) -> str:
    return " & ".join(sorted(alternative))


__all__ = [
    "COMPANION_MESSAGE",
    "CONSTRAINT_TYPES",
    "DISTINCT_MESSAGE",
    "FIELD_GROUP_MESSAGE",
    "MAX_MESSAGE",
    "MIN_MESSAGE",
    "ONEOF_MESSAGE",
    "PATTERN_MESSAGE",
    "RANGE_MESSAGE",
    "REQUIRED_COLLECTION_MESSAGE",
    "REQUIRED_MESSAGE",
    "SUPPORTED_PLACEHOLDERS",
    "UNKNOWN_ANY_MESSAGE",
    "VALIDATE_MESSAGE",
    "Companion",
    "Constraint",
    "ConstraintSet",
    "Custom",
    "CustomEvaluator",
    "Distinct",
    "FieldGroup",
    "NumericRange",
    "OneofRequired",
    "Pattern",
    "Required",
    "RegexFlags",
    "Validate",
    "parse_field_groups",
    "supported_placeholders",
]
