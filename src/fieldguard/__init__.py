"""Constraint validation for structured records."""

from fieldguard.access import FieldValue, RecordView
from fieldguard.bounds import FieldReference, NumericBound, RangeBounds, parse_bound, parse_range
from fieldguard.config import AnyPolicy, ValidationSettings, load_settings
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
    RegexFlags,
    Required,
    Validate,
    parse_field_groups,
)
from fieldguard.errors import (
    BoundParseError,
    ConfigLoadError,
    ConstraintDefinitionError,
    NumberParseError,
    NumericTypeMismatchError,
    PayloadDecodeError,
    TemplateFormatError,
    UnknownFieldError,
    UnknownTypeError,
    UnsupportedPlaceholderError,
    ValidationDepthError,
    ValidationException,
)
from fieldguard.evaluator import ConstraintSetResolver, MessageValidator
from fieldguard.numeric import NumericKind, NumericValue, common_kind, parse_number, widens
from fieldguard.records import AnyPayload, Record
from fieldguard.registry import ConstraintRegistry
from fieldguard.schema import Cardinality, FieldDescriptor, FieldKind, RecordType, TypeRegistry
from fieldguard.templates import (
    Placeholder,
    TemplateString,
    format_template,
    format_template_unsafe,
)
from fieldguard.validator import Validator, check, validate
from fieldguard.violations import ConstraintViolation, ValidationError

__version__ = "0.1.0"

__all__ = [
    "AnyPayload",
    "AnyPolicy",
    "BoundParseError",
    "Cardinality",
    "Companion",
    "ConfigLoadError",
    "Constraint",
    "ConstraintDefinitionError",
    "ConstraintRegistry",
    "ConstraintSet",
    "ConstraintSetResolver",
    "ConstraintViolation",
    "Custom",
    "Distinct",
    "FieldDescriptor",
    "FieldGroup",
    "FieldKind",
    "FieldReference",
    "FieldValue",
    "MessageValidator",
    "NumberParseError",
    "NumericBound",
    "NumericKind",
    "NumericRange",
    "NumericTypeMismatchError",
    "NumericValue",
    "OneofRequired",
    "Pattern",
    "PayloadDecodeError",
    "Placeholder",
    "RangeBounds",
    "Record",
    "RecordType",
    "RecordView",
    "RegexFlags",
    "Required",
    "TemplateFormatError",
    "TemplateString",
    "TypeRegistry",
    "UnknownFieldError",
    "UnknownTypeError",
    "UnsupportedPlaceholderError",
    "Validate",
    "ValidationDepthError",
    "ValidationError",
    "ValidationException",
    "ValidationSettings",
    "Validator",
    "check",
    "common_kind",
    "format_template",
    "format_template_unsafe",
    "load_settings",
    "parse_bound",
    "parse_field_groups",
    "parse_number",
    "parse_range",
    "validate",
    "widens",
]
