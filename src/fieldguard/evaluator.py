"""
fieldguard — constraint evaluator.

File: src/fieldguard/evaluator.py

Purpose
- Evaluate one ConstraintSet against one RecordView and accumulate violations, recursing into
  nested and packed records for ``Validate`` constraints.

Functional requirements
- Constraints run in declaration order; one failing constraint never stops the others.
- Nested violations are wrapped as children of one violation on the enclosing field.
- Broken definitions discovered while evaluating (an unknown companion, incompatible numeric
  kinds) raise immediately; plugin exceptions propagate unchanged.
- Recursion deeper than ``ValidationSettings.max_depth`` raises ``ValidationDepthError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, assert_never

import structlog

from fieldguard.access import FieldValue, RecordView
from fieldguard.config import DEFAULT_SETTINGS, ValidationSettings
from fieldguard.constraints import (
    UNKNOWN_ANY_MESSAGE,
    Companion,
    Constraint,
    ConstraintSet,
    Custom,
    Distinct,
    FieldGroup,
    NumericRange,
    OneofRequired,
    Pattern,
    Required,
    Validate,
)
from fieldguard.errors import PayloadDecodeError, UnknownFieldError, ValidationDepthError
from fieldguard.numeric import NumericValue
from fieldguard.records import AnyPayload, Record
from fieldguard.schema import FieldDescriptor, TypeRegistry
from fieldguard.templates import Placeholder, TemplateString
from fieldguard.violations import ConstraintViolation, ValidationError


class ConstraintSetResolver(Protocol):
    """Supplies the constraints of a record type; unknown types get an empty set."""

    def resolve(self, type_name: str) -> ConstraintSet: ...


class MessageValidator:
    """Accumulates the violations of one record view.

    An instance is single-use: create one per ``(view, constraint set)`` pair.
    """

    def __init__(
        self,
        view: RecordView,
        *,
        resolver: ConstraintSetResolver,
        types: TypeRegistry,
        settings: ValidationSettings | None = None,
        logger: Any | None = None,
        depth: int = 0,
    ) -> None:
        self._view = view
        self._resolver = resolver
        self._types = types
        self._settings = settings if settings is not None else DEFAULT_SETTINGS
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._depth = depth
        self._violations: list[ConstraintViolation] = []

    @property
    def view(self) -> RecordView:
        return self._view

    @property
    def violations(self) -> tuple[ConstraintViolation, ...]:
        return tuple(self._violations)

    def run(self, constraint_set: ConstraintSet) -> ValidationError | None:
        if constraint_set.type_name != self._view.type_name:
            raise ValueError(
                f"constraints of `{constraint_set.type_name}` cannot validate a "
                f"`{self._view.type_name}` record"
            )
        for constraint in constraint_set:
            self._evaluate(constraint)
        return self.translate()

    def translate(self) -> ValidationError | None:
        return ValidationError.of(self._violations)

    def _evaluate(self, constraint: Constraint) -> None:
        if isinstance(constraint, Required):
            self._check_required(constraint)
        elif isinstance(constraint, NumericRange):
            self._check_range(constraint)
        elif isinstance(constraint, Pattern):
            self._check_pattern(constraint)
        elif isinstance(constraint, Distinct):
            self._check_distinct(constraint)
        elif isinstance(constraint, Companion):
            self._check_companion(constraint)
        elif isinstance(constraint, Validate):
            self._check_nested(constraint)
        elif isinstance(constraint, FieldGroup):
            self._check_field_group(constraint)
        elif isinstance(constraint, OneofRequired):
            self._check_oneof(constraint)
        elif isinstance(constraint, Custom):
            self._run_custom(constraint)
        else:
            assert_never(constraint)

    def _check_required(self, constraint: Required) -> None:
        if not constraint.enabled:
            return
        value = self._view.value_of(constraint.field)
        if constraint.field.is_collection and constraint.collection_needs_non_default_element:
            missing = not value.non_default()
        else:
            missing = value.is_default
        if missing:
            self._report(constraint.error_message, value, {})

    def _check_range(self, constraint: NumericRange) -> None:
        value = self._view.value_of(constraint.field)
        kind = constraint.field.numeric_kind
        assert kind is not None

        extra: dict[str, str] = {}
        lower = upper = None
        if constraint.lower is not None:
            lower = constraint.lower.resolve(self._view)
            extra[Placeholder.MIN_VALUE] = lower.to_text()
            extra[Placeholder.MIN_OPERATOR] = constraint.lower.lower_operator
        if constraint.upper is not None:
            upper = constraint.upper.resolve(self._view)
            extra[Placeholder.MAX_VALUE] = upper.to_text()
            extra[Placeholder.MAX_OPERATOR] = constraint.upper.upper_operator
        if constraint.notation:
            extra[Placeholder.RANGE_VALUE] = constraint.notation
        else:
            extra[Placeholder.RANGE_VALUE] = " and ".join(
                f"{extra[operator]} {extra[bound]}"
                for operator, bound in (
                    (Placeholder.MIN_OPERATOR, Placeholder.MIN_VALUE),
                    (Placeholder.MAX_OPERATOR, Placeholder.MAX_VALUE),
                )
                if operator in extra
            )

        for element in value.values:
            number = NumericValue(kind, element)  # type: ignore[arg-type]
            admitted = True
            if constraint.lower is not None and lower is not None:
                admitted = constraint.lower.admits_from_below(number, lower)
            if admitted and constraint.upper is not None and upper is not None:
                admitted = constraint.upper.admits_from_above(number, upper)
            if not admitted:
                self._report(
                    constraint.error_message,
                    value,
                    {**extra, Placeholder.FIELD_VALUE: number.to_text()},
                    field_value=element,
                )

    def _check_pattern(self, constraint: Pattern) -> None:
        value = self._view.value_of(constraint.field)
        for element in value.non_default():
            assert isinstance(element, str)
            if constraint.matches(element):
                continue
            self._report(
                constraint.error_message,
                value,
                {
                    Placeholder.FIELD_VALUE: element,
                    Placeholder.REGEX_PATTERN: constraint.regex,
                    Placeholder.REGEX_MODIFIERS: constraint.flags.describe(),
                },
                field_value=element,
            )

    def _check_distinct(self, constraint: Distinct) -> None:
        value = self._view.value_of(constraint.field)
        seen: list[object] = []
        duplicates: list[object] = []
        for element in value.values:
            if element in seen:
                if element not in duplicates:
                    duplicates.append(element)
            else:
                seen.append(element)
        if not duplicates:
            return
        found = tuple(duplicates)
        self._report(
            constraint.error_message,
            value,
            {
                Placeholder.FIELD_VALUE: render_value(value.values),
                Placeholder.FIELD_DUPLICATES: render_value(found),
            },
            field_value=found,
        )

    def _check_companion(self, constraint: Companion) -> None:
        companion = self._view.declaration().find_field(constraint.companion)
        if companion is None:
            raise UnknownFieldError(
                f"companion `{constraint.companion}` of `{constraint.field.qualified_name}` "
                f"is not declared by `{self._view.type_name}`"
            )
        subject = self._view.value_of(constraint.field)
        if subject.is_default or not self._view.value_of(companion).is_default:
            return
        self._report(
            constraint.error_message,
            subject,
            {
                Placeholder.FIELD_VALUE: render_value(_field_payload(subject)),
                Placeholder.GOES_COMPANION: companion.name,
            },
            field_value=_field_payload(subject),
        )

    def _check_nested(self, constraint: Validate) -> None:
        value = self._view.value_of(constraint.field)
        children: list[ConstraintViolation] = []
        for element in value.non_default():
            record = self._materialize(element, value, children)
            if record is None:
                continue
            nested = self._validate_nested(self._view.nested_in(constraint.field.name, record))
            if nested is not None:
                children.extend(nested.violations)
        if not children:
            return

        extra: dict[str, str] = {Placeholder.FIELD_VALUE: render_value(_field_payload(value))}
        single = _field_payload(value)
        if isinstance(single, AnyPayload):
            extra[Placeholder.ANY_TYPE_URL] = single.type_url
        self._report(
            constraint.error_message,
            value,
            extra,
            field_value=_field_payload(value),
            children=tuple(children),
        )

    def _materialize(
        self,
        element: object,
        value: FieldValue,
        children: list[ConstraintViolation],
    ) -> Record | None:
        if not isinstance(element, AnyPayload):
            assert isinstance(element, Record)
            return element
        try:
            unpacked = self._types.unpack(element)
        except PayloadDecodeError as exc:
            field_path = ".".join(value.field_path)
            raise PayloadDecodeError(f"field `{field_path}`: {exc}") from exc
        if unpacked is not None:
            return unpacked
        self._logger.warning(
            "any_payload_unresolved",
            type_url=element.type_url,
            field_path=".".join(value.field_path),
            policy=self._settings.unknown_any_policy.value,
        )
        if self._settings.strict_any:
            children.append(
                ConstraintViolation(
                    message=TemplateString(
                        UNKNOWN_ANY_MESSAGE,
                        {
                            **_field_placeholders(self._view, value.field),
                            Placeholder.ANY_TYPE_URL: element.type_url,
                        },
                    ),
                    field_path=value.field_path,
                    type_name=self._view.type_name,
                    field_value=element.type_url,
                )
            )
        return None

    def _validate_nested(self, view: RecordView) -> ValidationError | None:
        depth = self._depth + 1
        if depth > self._settings.max_depth:
            self._logger.error(
                "validation_depth_exceeded",
                type_name=view.type_name,
                depth=depth,
                max_depth=self._settings.max_depth,
                field_path=".".join(view.path),
            )
            raise ValidationDepthError(
                f"nested validation of `{view.type_name}` at `{'.'.join(view.path)}` exceeds "
                f"the maximum depth of {self._settings.max_depth}"
            )
        constraint_set = self._resolver.resolve(view.type_name)
        if constraint_set.is_empty:
            return None
        nested = MessageValidator(
            view,
            resolver=self._resolver,
            types=self._types,
            settings=self._settings,
            logger=self._logger,
            depth=depth,
        )
        return nested.run(constraint_set)

    def _check_field_group(self, constraint: FieldGroup) -> None:
        for alternative in constraint.alternatives:
            if all(not self._view.value_of(name).is_default for name in alternative):
                return
        self._violations.append(
            ConstraintViolation(
                message=TemplateString(
                    constraint.error_message,
                    {
                        Placeholder.MESSAGE_TYPE: self._view.type_name,
                        Placeholder.REQUIRE_FIELDS: constraint.describe(),
                    },
                ),
                field_path=self._view.path,
                type_name=self._view.type_name,
            )
        )

    def _check_oneof(self, constraint: OneofRequired) -> None:
        if any(self._view.record.has(name) for name in constraint.case_field_names):
            return
        self._violations.append(
            ConstraintViolation(
                message=TemplateString(
                    constraint.error_message,
                    {
                        Placeholder.GROUP_PATH: constraint.oneof_name,
                        Placeholder.PARENT_TYPE: self._view.type_name,
                    },
                ),
                field_path=self._view.field_path(constraint.oneof_name),
                type_name=self._view.type_name,
            )
        )

    def _run_custom(self, constraint: Custom) -> None:
        produced = constraint.evaluator(self._view)
        for index, violation in enumerate(produced):
            if not isinstance(violation, ConstraintViolation):
                raise TypeError(
                    f"custom constraint `{constraint.name}` returned "
                    f"{type(violation).__name__} at index {index}, expected ConstraintViolation"
                )
            self._violations.append(violation)

    def _report(
        self,
        template: str,
        value: FieldValue,
        extra: Mapping[str, str],
        *,
        field_value: object = None,
        children: tuple[ConstraintViolation, ...] = (),
    ) -> None:
        self._violations.append(
            ConstraintViolation(
                message=TemplateString(
                    template, {**_field_placeholders(self._view, value.field), **extra}
                ),
                field_path=value.field_path,
                type_name=self._view.type_name,
                field_value=field_value,
                children=children,
            )
        )


def render_value(value: object) -> str:
    """Render a field value for a message placeholder."""

    if isinstance(value, NumericValue):
        return value.to_text()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, AnyPayload):
        return value.type_url
    if isinstance(value, (tuple, list)):
        return "[" + ", ".join(render_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return "{" + ", ".join(f"{key}: {render_value(item)}" for key, item in value.items()) + "}"
    return str(value)


def _field_placeholders(view: RecordView, field: FieldDescriptor) -> dict[str, str]:
    return {
        Placeholder.FIELD_PATH: field.name,
        Placeholder.FIELD_TYPE: field.type_label,
        Placeholder.PARENT_TYPE: view.type_name,
    }


def _field_payload(value: FieldValue) -> object:
    if value.field.is_singular:
        return value.single_value()
    return value.values


__all__ = ["ConstraintSetResolver", "MessageValidator", "render_value"]
