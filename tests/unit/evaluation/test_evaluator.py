"""
fieldguard — unit tests for single-record constraint evaluation

File: tests/unit/evaluation/test_evaluator.py

Purpose
- Validate each constraint variant against one record, including messages, paths and values.

What this test file should cover
- Default detection for singular fields and collections.
- Literal and referenced numeric bounds, NaN handling, per-element reporting.
- Pattern, distinct, companion, field group, oneof and custom plugin behavior.
"""

from __future__ import annotations

import math

import pytest

from fieldguard.access import RecordView
from fieldguard.config import ValidationSettings
from fieldguard.constraints import (
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
    parse_field_groups,
)
from fieldguard.errors import UnknownFieldError
from fieldguard.evaluator import MessageValidator, render_value
from fieldguard.records import AnyPayload, Record
from fieldguard.violations import ConstraintViolation, ValidationError

from . import RECEIVER, TYPES, MappingResolver, RecordingLogger, receiver_field


def _evaluate(record: Record, *constraints: Constraint) -> ValidationError | None:
    constraint_set = ConstraintSet.for_type(record.record_type, *constraints)
    validator = MessageValidator(
        RecordView.top_level(record),
        resolver=MappingResolver([constraint_set]),
        types=TYPES,
        settings=ValidationSettings(),
        logger=RecordingLogger(),
    )
    return validator.run(constraint_set)


def _only(error: ValidationError | None) -> ConstraintViolation:
    assert error is not None
    assert len(error) == 1
    return error.violations[0]


def _receiver(**values: object) -> Record:
    return Record(RECEIVER, values)


def test_required_reports_unset_string() -> None:
    violation = _only(_evaluate(_receiver(), Required(receiver_field("name"))))

    assert violation.field_path == ("name",)
    assert violation.type_name == "Receiver"
    assert violation.field_value is None
    assert violation.format() == (
        "The field `Receiver.name` of the type `string` must have a non-default value."
    )
    assert _evaluate(_receiver(name="Ada"), Required(receiver_field("name"))) is None


def test_required_treats_empty_message_record_as_set() -> None:
    required = Required(receiver_field("address"))

    assert _evaluate(_receiver(), required) is not None
    address = Record(TYPES.require("Address"))
    assert _evaluate(_receiver(address=address), required) is None


def test_required_collection_fails_only_when_empty_by_default() -> None:
    required = Required(receiver_field("tags"))

    violation = _only(_evaluate(_receiver(), required))
    assert violation.format() == (
        "The field `Receiver.tags` of the type `repeated string` must not be empty."
    )
    assert _evaluate(_receiver(tags=["", ""]), required) is None


def test_required_collection_can_demand_a_non_default_element() -> None:
    required = Required(receiver_field("tags"), collection_needs_non_default_element=True)

    assert _evaluate(_receiver(tags=["", ""]), required) is not None
    assert _evaluate(_receiver(tags=["", "x"]), required) is None


def test_disabled_required_is_skipped() -> None:
    assert _evaluate(_receiver(), Required(receiver_field("name"), enabled=False)) is None


def test_range_reports_value_and_notation() -> None:
    constraint = NumericRange.from_notation(receiver_field("age"), "[0..130]", TYPES)

    violation = _only(_evaluate(_receiver(age=131), constraint))
    assert violation.field_value == 131
    assert violation.format() == (
        "The field `Receiver.age` of the type `int32` must be within the range `[0..130]`, "
        "but it has the value `131`."
    )
    assert _evaluate(_receiver(age=130), constraint) is None


def test_closed_range_admits_both_ends() -> None:
    constraint = NumericRange.from_notation(receiver_field("age"), "[0..100]", TYPES)

    assert _evaluate(_receiver(age=0), constraint) is None
    assert _evaluate(_receiver(age=100), constraint) is None
    assert _only(_evaluate(_receiver(age=-1), constraint)).field_value == -1
    assert _only(_evaluate(_receiver(age=101), constraint)).field_value == 101


def test_range_checks_unset_numeric_fields_as_zero() -> None:
    constraint = NumericRange.from_notation(receiver_field("age"), "[1..130]", TYPES)

    violation = _only(_evaluate(_receiver(), constraint))
    assert violation.field_value == 0


def test_range_reports_every_failing_element() -> None:
    constraint = NumericRange.from_notation(receiver_field("scores"), "[0..10]", TYPES)

    error = _evaluate(_receiver(scores=[1, 11, -1, 5]), constraint)
    assert error is not None
    assert [violation.field_value for violation in error] == [11, -1]
    assert all(violation.field_path == ("scores",) for violation in error)


def test_exclusive_minimum_message() -> None:
    constraint = NumericRange.minimum(receiver_field("ratio"), "0.0", TYPES, exclusive=True)

    violation = _only(_evaluate(_receiver(ratio=0.0), constraint))
    assert violation.format() == (
        "The field `Receiver.ratio` of the type `double` must be > 0.0, "
        "but it has the value `0.0`."
    )


def test_nan_is_always_out_of_range() -> None:
    constraint = NumericRange.from_notation(receiver_field("ratio"), "[0.0..1.0]", TYPES)

    violation = _only(_evaluate(_receiver(ratio=math.nan), constraint))
    assert violation.message.values["field.value"] == "nan"


def test_range_value_placeholder_without_notation() -> None:
    constraint = NumericRange.minimum(
        receiver_field("age"),
        "18",
        TYPES,
        error_message="${field.path} must be ${range.value}",
    )

    violation = _only(_evaluate(_receiver(age=10), constraint))
    assert violation.format() == "age must be >= 18"


def test_single_sided_range_renders_its_own_bound_strictly() -> None:
    constraint = NumericRange.minimum(
        receiver_field("age"),
        "18",
        TYPES,
        error_message="${field.path} must be ${min.operator} ${min.value}",
    )

    violation = _only(_evaluate(_receiver(age=10), constraint))
    assert violation.format() == "age must be >= 18"
    assert "max.value" not in violation.message.values


def test_maximum_may_reference_a_sibling_field() -> None:
    constraint = NumericRange.maximum(receiver_field("age"), "max_age", TYPES)

    violation = _only(_evaluate(_receiver(age=50, max_age=40), constraint))
    assert violation.message.values["max.value"] == "40"
    assert violation.message.values["max.operator"] == "<="
    assert _evaluate(_receiver(age=30, max_age=40), constraint) is None


def test_pattern_full_match_and_partial_match() -> None:
    strict = Pattern(receiver_field("note"), "a.c")
    partial = Pattern(receiver_field("note"), "a.c", allows_partial_match=True)

    violation = _only(_evaluate(_receiver(note="xabcx"), strict))
    assert violation.field_value == "xabcx"
    assert violation.format() == (
        "The field `Receiver.note` of the type `string` must match the regular expression "
        "`a.c` (modifiers: none), but it has the value `xabcx`."
    )
    assert _evaluate(_receiver(note="xabcx"), partial) is None
    assert _evaluate(_receiver(), strict) is None


def test_pattern_checks_only_non_default_elements() -> None:
    constraint = Pattern(receiver_field("tags"), "[a-z]+")

    violation = _only(_evaluate(_receiver(tags=["abc", "", "A1"]), constraint))
    assert violation.field_value == "A1"


def test_distinct_reports_duplicates_in_first_seen_order() -> None:
    constraint = Distinct(receiver_field("scores"))

    violation = _only(_evaluate(_receiver(scores=[1, 2, 1, 3, 2]), constraint))
    assert violation.field_value == (1, 2)
    assert "`[1, 2]`" in violation.format()
    assert _evaluate(_receiver(scores=[1, 2, 3]), constraint) is None


def test_distinct_on_map_compares_values() -> None:
    constraint = Distinct(receiver_field("aliases"))

    violation = _only(_evaluate(_receiver(aliases={1: "a", 2: "a", 3: "b"}), constraint))
    assert violation.field_value == ("a",)


def test_companion_must_be_set_with_its_field() -> None:
    constraint = Companion(receiver_field("note"), "signature")

    violation = _only(_evaluate(_receiver(note="signed"), constraint))
    assert violation.field_path == ("note",)
    assert violation.field_value == "signed"
    assert violation.format() == (
        "The field `signature` must also be set when `note` is set in `Receiver`."
    )
    assert _evaluate(_receiver(), constraint) is None
    assert _evaluate(_receiver(note="signed", signature=b"\x01"), constraint) is None


def test_unknown_companion_fails_at_evaluation() -> None:
    constraint_set = ConstraintSet("Receiver", (Companion(receiver_field("note"), "missing"),))
    validator = MessageValidator(
        RecordView.top_level(_receiver(note="x")),
        resolver=MappingResolver([constraint_set]),
        types=TYPES,
    )

    with pytest.raises(UnknownFieldError, match="companion `missing`"):
        validator.run(constraint_set)


def test_field_group_requires_one_complete_alternative() -> None:
    group = FieldGroup("Receiver", parse_field_groups("email | phone & note", RECEIVER))

    violation = _only(_evaluate(_receiver(phone="555"), group))
    assert violation.field_path == ()
    assert violation.format() == (
        "The message `Receiver` must have at least one of the field groups set: "
        "`email | note & phone`."
    )
    assert _evaluate(_receiver(email="a@example.com"), group) is None
    assert _evaluate(_receiver(phone="555", note="n"), group) is None


def test_oneof_required_uses_explicit_presence() -> None:
    constraint = OneofRequired.for_oneof(RECEIVER, "contact")

    violation = _only(_evaluate(_receiver(), constraint))
    assert violation.field_path == ("contact",)
    assert violation.format() == "One of the fields in the `contact` group must be set."
    assert _evaluate(_receiver(email=""), constraint) is None


def test_custom_constraint_violations_are_appended() -> None:
    def signature_check(view: RecordView) -> list[ConstraintViolation]:
        if view.record.get("signature"):
            return []
        return [ConstraintViolation("unsigned", view.field_path("signature"), view.type_name)]

    error = _evaluate(
        _receiver(), Required(receiver_field("name")), Custom("Receiver", signature_check)
    )
    assert error is not None
    assert [violation.field_path for violation in error] == [("name",), ("signature",)]
    assert error.violations[1].format() == "unsigned"


def test_custom_constraint_must_return_violations() -> None:
    with pytest.raises(TypeError, match="expected ConstraintViolation"):
        _evaluate(_receiver(), Custom("Receiver", lambda view: ["bad"], name="bad_plugin"))


def test_custom_constraint_exceptions_propagate() -> None:
    def broken(view: RecordView) -> list[ConstraintViolation]:
        raise RuntimeError("plugin failure")

    with pytest.raises(RuntimeError, match="plugin failure"):
        _evaluate(_receiver(), Custom("Receiver", broken))


def test_violations_follow_declaration_order() -> None:
    error = _evaluate(
        _receiver(age=200, note="x"),
        Required(receiver_field("name")),
        NumericRange.from_notation(receiver_field("age"), "[0..130]", TYPES),
        Companion(receiver_field("note"), "signature"),
    )

    assert error is not None
    assert [violation.field_path for violation in error] == [("name",), ("age",), ("note",)]


def test_run_rejects_constraints_of_another_type() -> None:
    validator = MessageValidator(
        RecordView.top_level(_receiver()), resolver=MappingResolver(), types=TYPES
    )

    with pytest.raises(ValueError, match="cannot validate a `Receiver` record"):
        validator.run(ConstraintSet.empty("Address"))


def test_validation_is_repeatable() -> None:
    record = _receiver(age=200, scores=[3, 3])
    constraints = (
        NumericRange.from_notation(receiver_field("age"), "[0..130]", TYPES),
        Distinct(receiver_field("scores")),
    )

    assert _evaluate(record, *constraints) == _evaluate(record, *constraints)


def test_render_value() -> None:
    assert render_value(True) == "true"
    assert render_value(b"\x01\xff") == "01ff"
    assert render_value((1, "a")) == "[1, a]"
    assert render_value({1: False}) == "{1: false}"
    assert render_value(AnyPayload("example.com/T")) == "example.com/T"
